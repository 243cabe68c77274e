"""
Error handling utilities for edge functions.

Provides a typed error taxonomy with error codes and HTTP status mapping, and
the conversion of any exception into the JSON error envelope.
"""

from typing import Any, Dict, Optional, Tuple


# Common error codes
class ErrorCode:
    """Standard error codes for the application."""

    # Authorization errors
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    PLAN_NOT_ELIGIBLE = "PLAN_NOT_ELIGIBLE"

    # Request errors
    INVALID_INPUT = "INVALID_INPUT"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"

    # Business logic errors
    DOMAIN_ERROR = "DOMAIN_ERROR"

    # System errors
    CONFIG_ERROR = "CONFIG_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """
    Application error with error code, message and HTTP status.

    Subclasses fix the error code and status; the message always ends up as
    the ``error`` field of the response envelope.
    """

    status_code = 500
    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.error_code = error_code or self.default_code
        self.message = message or "Failed"
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON error envelope."""
        return {
            **self.details,
            "ok": False,
            "error": self.message,
            "errorCode": self.error_code,
        }


class ValidationError(AppError):
    """Malformed or incomplete request input."""

    status_code = 400
    default_code = ErrorCode.INVALID_INPUT


class DomainError(AppError):
    """The backend reported a logical failure through an explicit ok/error field."""

    status_code = 400
    default_code = ErrorCode.DOMAIN_ERROR


class UnauthenticatedError(AppError):
    """No usable bearer credential was supplied, or the backend rejected it."""

    status_code = 401
    default_code = ErrorCode.UNAUTHORIZED


class ForbiddenError(AppError):
    """The caller lacks the capability required for the operation."""

    status_code = 403
    default_code = ErrorCode.FORBIDDEN


class PlanError(ForbiddenError):
    """The target account is not on a plan that allows the operation."""

    default_code = ErrorCode.PLAN_NOT_ELIGIBLE


class NotFoundError(AppError):
    """A lookup was exhausted without finding the record."""

    status_code = 404
    default_code = ErrorCode.NOT_FOUND


class MethodNotAllowedError(AppError):
    status_code = 405
    default_code = ErrorCode.METHOD_NOT_ALLOWED


class PayloadTooLargeError(AppError):
    status_code = 413
    default_code = ErrorCode.PAYLOAD_TOO_LARGE


class ConfigError(AppError):
    """Required backend location or credential configuration is missing."""

    status_code = 500
    default_code = ErrorCode.CONFIG_ERROR


class UpstreamError(AppError):
    """
    A backend call failed at the HTTP or GraphQL level.

    ``upstream_status`` and ``body`` describe what the backend returned. The
    envelope status stays 500 unless the call site passes the upstream status
    through with ``status_code``.
    """

    default_code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        body: Any = None,
        *,
        status_code: Optional[int] = None,
    ):
        self.upstream_status = upstream_status
        self.body = body
        super().__init__(message, status_code=status_code)

    @property
    def is_auth_failure(self) -> bool:
        """True when the backend refused the credential rather than the request."""
        if self.upstream_status in (401, 403):
            return True
        text = self.message.lower()
        return any(
            marker in text
            for marker in (
                "access-denied",
                "permission",
                "not authorized",
                "unauthorized",
                "jwt",
                "not found in type",
            )
        )


def handle_error(error: Exception) -> Tuple[int, Dict[str, Any]]:
    """
    Convert exception to a status code and error envelope.

    Args:
        error: Exception to handle

    Returns:
        Tuple of HTTP status code and envelope dictionary
    """
    if isinstance(error, AppError):
        return error.status_code, error.to_dict()

    message = str(error) or "An unexpected error occurred. Please try again."
    return 500, {
        "ok": False,
        "error": message,
        "errorCode": ErrorCode.INTERNAL_ERROR,
    }
