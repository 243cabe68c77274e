"""
HTTP response builders for edge functions.

Every response body is a JSON envelope that always contains ``ok``; when
``ok`` is false, ``error`` is a non-empty string.
"""

import functools
import json
from typing import Any, Callable, Dict, Iterable, Optional

from .config import get_settings
from .errors import AppError, MethodNotAllowedError, handle_error
from .events import get_method
from .logging import StructuredLogger, get_correlation_id, get_logger

LambdaResponse = Dict[str, Any]
HandlerBody = Callable[[Dict[str, Any], Any, StructuredLogger], Dict[str, Any]]

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type, x-correlation-id"


def cors_headers(origin: Optional[str] = None, methods: Iterable[str] = ("POST",)) -> Dict[str, str]:
    """Build CORS headers for the configured origin."""
    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Methods": ", ".join([*methods, "OPTIONS"]),
    }


def json_response(
    status_code: int, payload: Any, headers: Optional[Dict[str, str]] = None
) -> LambdaResponse:
    """Build a JSON response with CORS headers."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json; charset=utf-8",
            **(headers if headers is not None else cors_headers()),
        },
        "body": json.dumps(payload, default=str),
    }


def ok_response(
    payload: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> LambdaResponse:
    """
    Build a success response.

    A payload that carries its own ``ok`` flag keeps it; the backend result
    is authoritative.
    """
    body: Dict[str, Any] = {"ok": True}
    body.update(payload or {})
    if body.get("ok") is not True and not body.get("error"):
        body["error"] = "Failed"
    return json_response(status_code, body, headers)


def error_response(error: Exception, headers: Optional[Dict[str, str]] = None) -> LambdaResponse:
    """Build an error response from any exception."""
    status_code, body = handle_error(error)
    if not body.get("error"):
        body["error"] = "Failed"
    return json_response(status_code, body, headers)


def preflight_response(headers: Optional[Dict[str, str]] = None) -> LambdaResponse:
    """Answer a CORS preflight request."""
    return {"statusCode": 204, "headers": headers if headers is not None else cors_headers(), "body": ""}


def api_handler(name: str, methods: Iterable[str] = ("POST",)) -> Callable[[HandlerBody], Callable[..., LambdaResponse]]:
    """
    Wrap a handler body into a Lambda-style ``(event, context)`` handler.

    The body receives ``(event, context, logger)`` and returns the success
    payload. Preflight, method checks and error conversion happen here, so a
    handler body only raises.

    Args:
        name: Function name used as the logger name
        methods: Accepted HTTP methods besides OPTIONS
    """
    allowed = tuple(method.upper() for method in methods)

    def decorator(func: HandlerBody) -> Callable[..., LambdaResponse]:
        @functools.wraps(func)
        def wrapper(event: Dict[str, Any], context: Any = None) -> LambdaResponse:
            event = event or {}
            logger = get_logger(name, get_correlation_id(event))
            headers = cors_headers(None, allowed)
            method = get_method(event)

            try:
                headers = cors_headers(get_settings().cors_origin, allowed)
                if method == "OPTIONS":
                    return preflight_response(headers)
                if method not in allowed:
                    raise MethodNotAllowedError("Method not allowed", {"method": method})
                logger.info(f"{name} handler invoked", method=method)
                payload = func(event, context, logger)
                return ok_response(payload, headers=headers)
            except AppError as e:
                log = logger.error if e.status_code >= 500 else logger.warning
                log(f"{name} failed", errorCode=e.error_code, error=e.message, status=e.status_code)
                return error_response(e, headers)
            except Exception as e:
                logger.error(f"{name} failed unexpectedly", error=str(e), errorType=type(e).__name__)
                return error_response(e, headers)

        return wrapper

    return decorator
