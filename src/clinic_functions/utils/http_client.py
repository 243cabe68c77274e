"""
Outbound HTTP client for the auth, GraphQL and storage services.

One ``BackendClient`` lives for the duration of a single request and owns one
``httpx.Client``; nothing is pooled across requests.
"""

import json
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .errors import ConfigError, UpstreamError


class BackendClient:
    """
    Thin wrapper over ``httpx.Client`` with credential header builders.

    ``default_transport`` lets tests route every client through an
    ``httpx.MockTransport``.
    """

    default_transport: Optional[httpx.BaseTransport] = None

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.settings = settings
        self._client = httpx.Client(
            timeout=settings.request_timeout,
            transport=transport or self.default_transport,
        )

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def admin_headers(self) -> Dict[str, str]:
        """Headers authenticating as the platform admin."""
        secret = self.settings.admin_secret
        if not secret:
            raise ConfigError("Missing configuration: admin_secret", {"missing": ["admin_secret"]})
        return {
            "x-hasura-admin-secret": secret,
            "Authorization": f"Bearer {secret}",
        }

    @staticmethod
    def bearer_headers(credential: str) -> Dict[str, str]:
        """Headers forwarding a caller credential (full ``Bearer ...`` value)."""
        if not credential.lower().startswith("bearer "):
            credential = f"Bearer {credential}"
        return {"Authorization": credential}

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Issue one request.

        Transport failures surface as UpstreamError without a status.
        """
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamError(f"{method} {url} failed: {e}") from e


def parse_payload(response: httpx.Response) -> Any:
    """Decode a JSON body, falling back to the raw text."""
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def error_message(payload: Any, default: str) -> str:
    """Pick a human-readable message out of an upstream error payload."""
    if isinstance(payload, dict):
        for key in ("error", "message", "msg"):
            value = payload.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if value:
                return str(value)
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def raise_for_upstream(response: httpx.Response, what: str, *, pass_status: bool = False) -> None:
    """
    Raise UpstreamError for any non-2xx response.

    Args:
        response: Upstream response
        what: Short description of the call, used in the message
        pass_status: Surface the upstream status as the response status
    """
    if response.is_success:
        return
    payload = parse_payload(response)
    message = f"{what} failed: {response.status_code} {error_message(payload, '')}".strip()
    raise UpstreamError(
        message,
        upstream_status=response.status_code,
        body=payload,
        status_code=response.status_code if pass_status else None,
    )
