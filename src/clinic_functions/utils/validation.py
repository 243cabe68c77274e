"""
Input validation utilities.

Normalizes emails, checks required fields and decodes base64 file payloads.
"""

import base64
import binascii
import re
from typing import Any, Optional

from .errors import PayloadTooLargeError, ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def text(value: Any) -> str:
    """Coerce an optional body field to a stripped string."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_email(value: Any) -> str:
    """
    Normalize an email for use as the identity natural key.

    Examples:
        >>> normalize_email('  Owner@Clinic.COM ')
        'owner@clinic.com'
    """
    return text(value).lower()


def require_fields(**fields: Any) -> None:
    """
    Require every keyword value to be non-empty.

    Raises:
        ValidationError: Listing the missing field names
    """
    missing = [name for name, value in fields.items() if value in (None, "")]
    if missing:
        raise ValidationError("Missing fields", {"missingFields": missing})


def validate_email(email: str) -> str:
    """
    Validate an already-normalized email.

    Raises:
        ValidationError: If the email is malformed
    """
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address", {"email": email})
    return email


def decode_base64_payload(value: Any, max_bytes: Optional[int] = None) -> bytes:
    """
    Decode a base64 file payload, accepting ``data:<mime>;base64,`` URLs.

    Args:
        value: Raw base64 string or data URL
        max_bytes: Upper bound on the decoded size

    Returns:
        Decoded bytes

    Raises:
        ValidationError: If the payload is empty or not valid base64
        PayloadTooLargeError: If the decoded payload exceeds max_bytes
    """
    encoded = text(value)
    if encoded.startswith("data:"):
        _, _, encoded = encoded.partition(",")
        encoded = encoded.strip()

    # Ignore line wrapping
    encoded = "".join(encoded.split())
    if not encoded:
        raise ValidationError("Missing base64 payload")

    # Decoded size, from the encoded length
    decoded_size = len(encoded) * 3 // 4 - encoded[-2:].count("=")
    if max_bytes is not None and decoded_size > max_bytes:
        raise PayloadTooLargeError("File too large", {"maxBytes": max_bytes})

    try:
        content = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid base64 payload")
    if not content:
        raise ValidationError("Invalid base64 payload")

    return content
