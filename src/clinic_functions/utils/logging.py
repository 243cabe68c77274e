"""
Logging utilities for edge functions.

Provides structured JSON logging with correlation IDs for tracing requests.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

# Keyword fields whose name contains one of these are masked
SENSITIVE_FIELDS = ("password", "secret", "token", "authorization")
REDACTED = "***"


def _level_name(raw: Optional[str]) -> str:
    """Map a LOG_LEVEL value to a known level name, INFO when unknown."""
    level = (raw or "INFO").strip().upper()
    return level if level in _LEVELS else "INFO"


def _redact(key: str, value: Any) -> Any:
    if any(marker in key.lower() for marker in SENSITIVE_FIELDS):
        return REDACTED
    return value


class StructuredLogger:
    """
    JSON logger for edge functions with correlation ID support.

    Example:
        logger = StructuredLogger(__name__)
        logger.info("Identity created", identity_id="7f0c...", created=True)
    """

    def __init__(self, name: str, correlation_id: Optional[str] = None) -> None:
        self.logger = logging.getLogger(name)
        self.logger.setLevel(_level_name(os.getenv("LOG_LEVEL")))
        self.name = name
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        """Internal method to emit structured JSON logs."""
        if _LEVELS[level] < self.logger.getEffectiveLevel():
            return

        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
            "correlationId": self.correlation_id,
            **{k: _redact(k, v) for k, v in kwargs.items()},
        }

        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        print(json.dumps(log_entry, default=str))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info level message."""
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning level message."""
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error level message."""
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug level message."""
        self._log("DEBUG", message, **kwargs)


def get_logger(name: str, correlation_id: Optional[str] = None) -> StructuredLogger:
    """Create a structured logger, optionally bound to a correlation ID."""
    return StructuredLogger(name, correlation_id)


def get_correlation_id(event: Dict[str, Any]) -> str:
    """
    Extract or generate correlation ID from an HTTP event.

    Checks for correlation ID in:
    1. event['requestContext']['requestId'] (API gateway / edge runtime)
    2. an 'x-correlation-id' header (any casing)
    3. Generates new UUID if not found
    """
    request_context = event.get("requestContext") or {}
    if request_context.get("requestId"):
        return str(request_context["requestId"])

    headers = event.get("headers") or {}
    for key, value in headers.items():
        if key.lower() == "x-correlation-id" and value:
            return str(value)

    return str(uuid.uuid4())
