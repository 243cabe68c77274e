"""Tests for the identity (auth user) service."""

import httpx
import pytest
from nhost_fakes import ADMIN_SECRET, GRAPHQL_URL, NEW_UID, ROOT_USERS_URL, USERS_URL, FakeNhost, request_json

from clinic_functions.utils.config import Settings
from clinic_functions.utils.errors import ConfigError, NotFoundError, UpstreamError
from clinic_functions.utils.http_client import BackendClient
from clinic_functions.utils.identity import IdentityService
from clinic_functions.utils.retry import RetryPolicy

EMAIL = "vet@clinic.test"


def users(*pairs: tuple) -> httpx.Response:
    return httpx.Response(200, json={"users": [{"id": uid, "email": email} for uid, email in pairs]})


@pytest.fixture
def identities(backend: BackendClient) -> IdentityService:
    return IdentityService(backend)


class TestEnsureIdentity:
    """Tests for IdentityService.ensure_identity."""

    def test_creates_identity(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test a new user is created and flagged as created."""
        fake_nhost.on("POST", USERS_URL, httpx.Response(200, json={"id": NEW_UID, "email": EMAIL}))

        identity = identities.ensure_identity(EMAIL, "pw-123456")

        assert identity.id == NEW_UID
        assert identity.email == EMAIL
        assert identity.was_created is True
        assert identity.endpoint == USERS_URL
        request = fake_nhost.calls("POST", USERS_URL)[0]
        assert request.headers["x-hasura-admin-secret"] == ADMIN_SECRET
        assert request_json(request) == {
            "email": EMAIL,
            "password": "pw-123456",
            "emailVerified": True,
            "active": True,
        }

    def test_reads_nested_user_id(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test ids nested under ``user`` are accepted."""
        fake_nhost.on("POST", USERS_URL, httpx.Response(201, json={"user": {"id": NEW_UID}}))

        assert identities.ensure_identity(EMAIL, "pw").id == NEW_UID

    def test_polls_when_create_returns_no_id(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test a created user without an id is found by polling the lookup."""
        fake_nhost.on("POST", USERS_URL, httpx.Response(200, json={}))
        fake_nhost.on("GET", USERS_URL, users(), users(), users((NEW_UID, EMAIL)))

        identity = identities.ensure_identity(EMAIL, "pw")

        assert identity.id == NEW_UID
        assert identity.was_created is True
        assert len(fake_nhost.calls("GET", USERS_URL)) == 3

    def test_poll_exhausted(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test polling gives up after the policy's attempts."""
        fake_nhost.on("POST", USERS_URL, httpx.Response(200, json={}))
        fake_nhost.on("GET", USERS_URL, users())

        with pytest.raises(NotFoundError) as exc_info:
            identities.ensure_identity(EMAIL, "pw")

        assert exc_info.value.message == "Auth user not found after create"
        assert len(fake_nhost.calls("GET", USERS_URL)) == 6

    def test_poll_waits_between_attempts(self, backend: BackendClient, fake_nhost: FakeNhost) -> None:
        """Test the lookup policy interval is used between polls."""
        slept = []
        service = IdentityService(backend, lookup_policy=RetryPolicy(3, 0.5, sleep=slept.append))
        fake_nhost.on("POST", USERS_URL, httpx.Response(200, json={}))
        fake_nhost.on("GET", USERS_URL, users())

        with pytest.raises(NotFoundError):
            service.ensure_identity(EMAIL, "pw")

        assert slept == [0.5, 0.5]

    @pytest.mark.parametrize(
        "conflict",
        [
            httpx.Response(409, json={"error": "conflict"}),
            httpx.Response(400, json={"error": "email-already-in-use"}),
            httpx.Response(400, text="User already registered"),
        ],
    )
    def test_reuses_existing_identity(
        self, identities: IdentityService, fake_nhost: FakeNhost, conflict: httpx.Response
    ) -> None:
        """Test an existing user is reused and not flagged as created."""
        fake_nhost.on("POST", USERS_URL, conflict)
        fake_nhost.on("GET", USERS_URL, users(("other-id", "other@clinic.test"), (NEW_UID, EMAIL.upper())))

        identity = identities.ensure_identity(EMAIL, "pw")

        assert identity.id == NEW_UID
        assert identity.was_created is False
        lookup = fake_nhost.calls("GET", USERS_URL)[0]
        assert lookup.url.params["email"] == EMAIL

    def test_lookup_without_emails_uses_first(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test lookups that do not echo emails return the filtered user."""
        fake_nhost.on("POST", USERS_URL, httpx.Response(409, json={}))
        fake_nhost.on("GET", USERS_URL, httpx.Response(200, json=[{"id": NEW_UID}]))

        assert identities.ensure_identity(EMAIL, "pw").id == NEW_UID

    def test_conflict_but_not_found(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test a conflict whose lookup finds nobody is a NotFoundError."""
        fake_nhost.on("POST", USERS_URL, httpx.Response(409, json={}))
        fake_nhost.on("GET", USERS_URL, users(("other-id", "other@clinic.test")))

        with pytest.raises(NotFoundError) as exc_info:
            identities.ensure_identity(EMAIL, "pw")

        assert exc_info.value.message == "Auth user not found"

    def test_falls_back_to_next_endpoint(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test a 404 admin endpoint makes the next candidate be tried."""
        fake_nhost.on("POST", ROOT_USERS_URL, httpx.Response(200, json={"id": NEW_UID}))

        identity = identities.ensure_identity(EMAIL, "pw")

        assert identity.endpoint == ROOT_USERS_URL
        assert [str(r.url) for r in fake_nhost.requests] == [USERS_URL, ROOT_USERS_URL]

    def test_all_endpoints_missing(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test every endpoint answering 404 is an upstream failure."""
        with pytest.raises(UpstreamError) as exc_info:
            identities.ensure_identity(EMAIL, "pw")

        assert exc_info.value.upstream_status == 404

    def test_create_failure(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test other create failures propagate without trying more endpoints."""
        fake_nhost.on("POST", USERS_URL, httpx.Response(500, json={"error": "db down"}))

        with pytest.raises(UpstreamError) as exc_info:
            identities.ensure_identity(EMAIL, "pw")

        assert exc_info.value.message == "Auth create failed: 500 db down"
        assert len(fake_nhost.requests) == 1

    def test_missing_configuration(self, fake_nhost: FakeNhost) -> None:
        """Test the auth URL and admin secret are required before any call."""
        with BackendClient(Settings(graphql_url=GRAPHQL_URL)) as client:
            with pytest.raises(ConfigError) as exc_info:
                IdentityService(client).ensure_identity(EMAIL, "pw")

        assert exc_info.value.details == {"missing": ["auth_url", "admin_secret"]}
        assert fake_nhost.requests == []


class TestDeleteAndLookup:
    """Tests for delete, get_user and update_metadata."""

    def test_delete_uses_known_endpoint_first(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test delete starts with the endpoint that created the user."""
        fake_nhost.on("DELETE", f"{ROOT_USERS_URL}/{NEW_UID}", httpx.Response(204))

        assert identities.delete(NEW_UID, ROOT_USERS_URL) is True
        assert len(fake_nhost.requests) == 1

    def test_delete_probes_endpoints(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test delete moves past 404s."""
        fake_nhost.on("DELETE", f"{ROOT_USERS_URL}/{NEW_UID}", httpx.Response(200, json={}))

        assert identities.delete(NEW_UID) is True
        assert len(fake_nhost.requests) == 2

    def test_delete_not_found_anywhere(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test delete reports False when no endpoint knows the user."""
        assert identities.delete(NEW_UID) is False

    def test_delete_failure(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test other delete failures raise."""
        fake_nhost.on("DELETE", f"{USERS_URL}/{NEW_UID}", httpx.Response(500, json={}))

        with pytest.raises(UpstreamError):
            identities.delete(NEW_UID)

    def test_get_user(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test users are fetched by id."""
        fake_nhost.on("GET", f"{USERS_URL}/{NEW_UID}", httpx.Response(200, json={"id": NEW_UID, "metadata": {}}))

        assert identities.get_user(NEW_UID) == {"id": NEW_UID, "metadata": {}}
        assert identities.get_user("missing") is None

    def test_update_metadata(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test metadata is replaced with a PATCH."""
        fake_nhost.on("PATCH", f"{USERS_URL}/{NEW_UID}", httpx.Response(200, json={}))

        identities.update_metadata(NEW_UID, {"role": "admin"})

        request = fake_nhost.calls("PATCH", f"{USERS_URL}/{NEW_UID}")[0]
        assert request_json(request) == {"metadata": {"role": "admin"}}

    def test_update_metadata_not_found(self, identities: IdentityService, fake_nhost: FakeNhost) -> None:
        """Test updating an unknown user is a NotFoundError."""
        with pytest.raises(NotFoundError):
            identities.update_metadata(NEW_UID, {"role": "admin"})
