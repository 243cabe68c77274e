"""
Test fixtures for edge function tests.

Provides deterministic settings, the fake Nhost backend and event builders.
"""

import json
from typing import Any, Callable, Dict, Generator, Optional

import httpx
import pytest
from nhost_fakes import (
    ACCOUNT_ID,
    ADMIN_SECRET,
    AUTH_URL,
    CALLER_TOKEN,
    CALLER_UID,
    GRAPHQL_URL,
    STORAGE_URL,
    FakeNhost,
)

from clinic_functions.utils.auth import AuthContext
from clinic_functions.utils.config import Settings, get_settings
from clinic_functions.utils.http_client import BackendClient


def _offline(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("network disabled in tests", request=request)


@pytest.fixture(autouse=True)
def nhost_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Deterministic environment, zero retry delays and no real network."""
    for name in (
        "NHOST_AUTH_ADMIN_URL",
        "NHOST_BACKEND_URL",
        "NHOST_SUBDOMAIN",
        "NHOST_REGION",
        "HASURA_GRAPHQL_ADMIN_SECRET",
        "SERVICE_OVERRIDE_TOKEN",
        "SUPER_ADMIN_EMAIL",
        "PROOF_BUCKET_ID",
        "MAX_UPLOAD_BYTES",
        "HTTP_TIMEOUT_SECONDS",
        "CORS_ALLOW_ORIGIN",
        "LOG_LEVEL",
        "LOOKUP_MAX_ATTEMPTS",
        "DOMAIN_RETRY_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setenv("NHOST_GRAPHQL_URL", GRAPHQL_URL)
    monkeypatch.setenv("NHOST_AUTH_URL", AUTH_URL)
    monkeypatch.setenv("NHOST_STORAGE_URL", STORAGE_URL)
    monkeypatch.setenv("NHOST_ADMIN_SECRET", ADMIN_SECRET)
    monkeypatch.setenv("LOOKUP_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("DOMAIN_RETRY_INTERVAL_SECONDS", "0")
    monkeypatch.setattr(BackendClient, "default_transport", httpx.MockTransport(_offline))

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_nhost(monkeypatch: pytest.MonkeyPatch) -> FakeNhost:
    """Route every BackendClient through a fresh FakeNhost."""
    fake = FakeNhost()
    monkeypatch.setattr(BackendClient, "default_transport", httpx.MockTransport(fake.handler))
    return fake


@pytest.fixture
def settings() -> Settings:
    """Settings resolved from the test environment."""
    return get_settings()


@pytest.fixture
def backend(settings: Settings, fake_nhost: FakeNhost) -> Generator[BackendClient, None, None]:
    """Backend client wired to the fake services."""
    with BackendClient(settings) as client:
        yield client


@pytest.fixture
def owner_context() -> AuthContext:
    """Resolved context of a clinic owner."""
    return AuthContext(
        credential=CALLER_TOKEN,
        role="owner",
        account_id=ACCOUNT_ID,
        user_id=CALLER_UID,
        email="owner@clinic.test",
    )


@pytest.fixture
def super_admin_context() -> AuthContext:
    """Resolved context of a platform super-admin."""
    return AuthContext(credential=CALLER_TOKEN, is_super_admin=True, email="root@platform.test")


@pytest.fixture
def make_event() -> Callable[..., Dict[str, Any]]:
    """Factory for API-Gateway v2 style events."""

    def _make(
        body: Any = None,
        token: Optional[str] = CALLER_TOKEN,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        all_headers = {"content-type": "application/json"}
        if token:
            all_headers["Authorization"] = token
        all_headers.update(headers or {})
        return {
            "requestContext": {"requestId": "test-correlation-id", "http": {"method": method}},
            "headers": all_headers,
            "body": json.dumps(body) if isinstance(body, dict) else body,
            "isBase64Encoded": False,
        }

    return _make


@pytest.fixture
def lambda_context() -> Any:
    """Mock Lambda context."""

    class Context:
        function_name = "test-function"
        memory_limit_in_mb = 128
        aws_request_id = "test-request-id"

    return Context()
