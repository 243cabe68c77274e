"""
Inbound HTTP event helpers.

Edge functions receive API-Gateway style events (v1 or v2 payloads). The body
may be a JSON string, a base64 encoded JSON string, or an object already
parsed by the runtime.
"""

import base64
import binascii
import json
import re
from typing import Any, Dict, Optional

from .errors import UnauthenticatedError

_BEARER = re.compile(r"^bearer\s+\S+", re.IGNORECASE)


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse the JSON body of an event.

    Returns an empty dict for missing, empty or malformed bodies; the
    field-level validation that follows reports what is missing.
    """
    raw = event.get("body")
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}

    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return {}

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def unwrap_input(body: Dict[str, Any]) -> Dict[str, Any]:
    """Unwrap Hasura action payloads shaped as ``{"input": {...}}``."""
    inner = body.get("input")
    return inner if isinstance(inner, dict) else body


def get_header(event: Dict[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def get_method(event: Dict[str, Any]) -> str:
    """Extract the HTTP method from v2 (requestContext.http) or v1 events."""
    http = (event.get("requestContext") or {}).get("http") or {}
    return str(http.get("method") or event.get("httpMethod") or "POST").upper()


def get_bearer(event: Dict[str, Any]) -> str:
    """
    Return the caller's Authorization header value.

    Raises:
        UnauthenticatedError: If no bearer credential was supplied
    """
    header = (get_header(event, "authorization") or "").strip()
    if not header:
        raise UnauthenticatedError("Missing authorization")
    if not _BEARER.match(header):
        raise UnauthenticatedError("Authorization must be a bearer token")
    return header
