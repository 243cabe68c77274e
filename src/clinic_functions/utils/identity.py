"""
Identity (auth user) provisioning against the auth service admin API.

Endpoints used, relative to one of the candidate admin user collections:
    POST   {users}                create
    GET    {users}?email=...      lookup by email
    DELETE {users}/{id}           delete
"""

from dataclasses import dataclass
from typing import Any, List, Optional

import httpx

from .config import Settings
from .errors import ConfigError, NotFoundError, UpstreamError
from .http_client import BackendClient, parse_payload, raise_for_upstream
from .logging import StructuredLogger, get_logger
from .retry import RetryPolicy
from .urls import admin_user_endpoints

ALREADY_EXISTS_MARKERS = ("email-already-in-use", "already registered", "already exists")


@dataclass(frozen=True)
class Identity:
    """
    An auth user resolved for one request.

    ``was_created`` is True only when this request created the user; only
    such identities may be deleted by a compensating action.
    """

    id: str
    email: str
    was_created: bool
    endpoint: Optional[str] = None


def _user_id(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        if payload.get("id"):
            return str(payload["id"])
        user = payload.get("user")
        if isinstance(user, dict) and user.get("id"):
            return str(user["id"])
    return None


def _find_user_id(payload: Any, email: str) -> Optional[str]:
    """Pick the user matching ``email`` from a lookup payload."""
    if isinstance(payload, dict):
        users = payload.get("users")
        if users is None:
            return _user_id(payload)
    else:
        users = payload
    if not isinstance(users, list):
        return None

    candidates = [user for user in users if isinstance(user, dict) and user.get("id")]
    for user in candidates:
        if str(user.get("email", "")).lower() == email:
            return str(user["id"])
    # Some deployments do not echo the email; the filter already applied it
    if candidates and not any("email" in user for user in candidates):
        return str(candidates[0]["id"])
    return None


def _is_conflict(response: httpx.Response) -> bool:
    if response.status_code == 409:
        return True
    if response.status_code == 400:
        body = response.text.lower()
        return any(marker in body for marker in ALREADY_EXISTS_MARKERS)
    return False


class IdentityService:
    """
    Create, find and delete auth users with the admin secret.

    Args:
        client: Per-request backend client
        auth_url: Auth service base URL (defaults to settings.auth_url)
        lookup_policy: Polling used when a successful create returns no id
    """

    def __init__(
        self,
        client: BackendClient,
        auth_url: Optional[str] = None,
        lookup_policy: Optional[RetryPolicy] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        settings: Settings = client.settings
        self.client = client
        self.auth_url = auth_url or settings.auth_url
        self.lookup_policy = lookup_policy or settings.lookup_policy
        self.logger = logger or get_logger(__name__)

    def endpoints(self) -> List[str]:
        """Candidate admin user collections, most likely first."""
        if not self.auth_url or not self.client.settings.admin_secret:
            missing = self.client.settings.missing("auth_url", "admin_secret")
            raise ConfigError("Missing configuration: " + ", ".join(missing), {"missing": missing})
        return admin_user_endpoints(self.auth_url)

    def create(self, endpoint: str, email: str, password: str) -> httpx.Response:
        return self.client.request(
            "POST",
            endpoint,
            json={
                "email": email,
                "password": password,
                "emailVerified": True,
                "active": True,
            },
            headers=self.client.admin_headers(),
        )

    def lookup(self, endpoint: str, email: str) -> httpx.Response:
        return self.client.request(
            "GET",
            endpoint,
            params={"email": email},
            headers=self.client.admin_headers(),
        )

    def ensure_identity(self, email: str, password: str) -> Identity:
        """
        Create the user, or resolve the existing one with the same email.

        Args:
            email: Normalized (trimmed, lower-cased) email
            password: Plaintext password for a newly created user

        Returns:
            Identity with ``was_created`` telling whether this call created it

        Raises:
            ConfigError: If the auth URL or admin secret is not configured
            NotFoundError: If the user exists (or was created) but cannot be found
            UpstreamError: For any other auth service failure
        """
        last_error: Optional[UpstreamError] = None

        for endpoint in self.endpoints():
            response = self.create(endpoint, email, password)

            if response.status_code == 404:
                last_error = UpstreamError("Auth create failed: 404", 404, parse_payload(response))
                self.logger.debug("Admin users endpoint not found, trying next", endpoint=endpoint)
                continue

            if _is_conflict(response):
                lookup = self.lookup(endpoint, email)
                if lookup.status_code == 404:
                    last_error = UpstreamError("Auth lookup failed: 404", 404, parse_payload(lookup))
                    continue
                raise_for_upstream(lookup, "Auth lookup")
                user_id = _find_user_id(parse_payload(lookup), email)
                if not user_id:
                    raise NotFoundError("Auth user not found", {"email": email})
                self.logger.info("Reusing existing identity", identity_id=user_id)
                return Identity(user_id, email, was_created=False, endpoint=endpoint)

            raise_for_upstream(response, "Auth create")
            user_id = _user_id(parse_payload(response)) or self._poll_for_id(endpoint, email)
            self.logger.info("Created identity", identity_id=user_id)
            return Identity(user_id, email, was_created=True, endpoint=endpoint)

        raise last_error or UpstreamError("Auth create failed")

    def _poll_for_id(self, endpoint: str, email: str) -> str:
        """Wait for a just-created user to become visible to lookups."""
        policy = self.lookup_policy
        for attempt in range(policy.max_attempts):
            if attempt:
                policy.wait()
            response = self.lookup(endpoint, email)
            if response.is_success:
                user_id = _find_user_id(parse_payload(response), email)
                if user_id:
                    return user_id
            self.logger.debug("Created identity not visible yet", attempt=attempt + 1)
        raise NotFoundError("Auth user not found after create", {"email": email})

    def delete(self, identity_id: str, endpoint: Optional[str] = None) -> bool:
        """
        Delete a user, probing endpoint shapes until one does not answer 404.

        Returns:
            True if a delete was accepted
        """
        candidates = self.endpoints()
        if endpoint:
            candidates = [endpoint] + [c for c in candidates if c != endpoint]

        for candidate in candidates:
            response = self.client.request(
                "DELETE",
                f"{candidate}/{identity_id}",
                headers=self.client.admin_headers(),
            )
            if response.status_code == 404:
                continue
            raise_for_upstream(response, "Auth delete")
            return True
        return False

    def get_user(self, identity_id: str) -> Optional[dict]:
        """Fetch a user record by id, or None if no endpoint knows it."""
        for candidate in self.endpoints():
            response = self.client.request(
                "GET",
                f"{candidate}/{identity_id}",
                headers=self.client.admin_headers(),
            )
            if response.status_code == 404:
                continue
            raise_for_upstream(response, "Auth user fetch")
            payload = parse_payload(response)
            if isinstance(payload, dict):
                user = payload.get("user")
                return user if isinstance(user, dict) else payload
            return None
        return None

    def update_metadata(self, identity_id: str, metadata: dict, endpoint: Optional[str] = None) -> None:
        """Replace a user's metadata."""
        for candidate in [endpoint] if endpoint else self.endpoints():
            response = self.client.request(
                "PATCH",
                f"{candidate}/{identity_id}",
                json={"metadata": metadata},
                headers=self.client.admin_headers(),
            )
            if response.status_code == 404 and not endpoint:
                continue
            raise_for_upstream(response, "Auth user update", pass_status=True)
            return
        raise NotFoundError("User not found", {"userUid": identity_id})
