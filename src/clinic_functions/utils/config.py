"""
Process-wide configuration for edge functions.

All backend locations and credentials are resolved once from the environment
into a frozen ``Settings`` value and injected into the services, instead of
being read ad hoc by each function.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Mapping, Optional

from .errors import ConfigError
from .logging import get_logger
from .retry import RetryPolicy
from .urls import derive_service_url, service_url_from_subdomain

logger = get_logger(__name__)

DEFAULT_PROOF_BUCKET = "subscription-proofs"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_LOOKUP_POLICY = RetryPolicy(max_attempts=6, interval=0.5)
DEFAULT_DOMAIN_RETRY = RetryPolicy(max_attempts=2, interval=0.7)


@dataclass(frozen=True)
class Settings:
    """
    Resolved configuration.

    Attributes:
        auth_url: Auth service base URL (``.../v1``)
        graphql_url: GraphQL endpoint URL
        storage_url: Storage service base URL (``.../v1``)
        admin_secret: Hasura admin secret, also accepted by auth and storage
        service_override_token: Optional service credential used only after the
            caller's own credential was refused
        proof_bucket: Bucket holding subscription proofs
        max_upload_bytes: Largest accepted decoded upload
        request_timeout: Per-call HTTP timeout in seconds
        cors_origin: Value of Access-Control-Allow-Origin
        super_admin_email: Optional email always treated as super-admin
        lookup_policy: Polling used when a created identity has no id yet
        domain_retry: Retry used for transient domain-operation failures
    """

    auth_url: Optional[str] = None
    graphql_url: Optional[str] = None
    storage_url: Optional[str] = None
    admin_secret: Optional[str] = field(default=None, repr=False)
    service_override_token: Optional[str] = field(default=None, repr=False)
    proof_bucket: str = DEFAULT_PROOF_BUCKET
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    request_timeout: float = 30.0
    cors_origin: str = "*"
    super_admin_email: Optional[str] = None
    lookup_policy: RetryPolicy = DEFAULT_LOOKUP_POLICY
    domain_retry: RetryPolicy = DEFAULT_DOMAIN_RETRY

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Explicit per-service URLs win. Missing auth and storage URLs fall back
        to the degraded-mode heuristics in ``urls``.
        """
        env: Mapping[str, str] = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = (env.get(name) or "").strip()
            return value or None

        region = get("NHOST_REGION")
        subdomain = get("NHOST_SUBDOMAIN")
        graphql_url = get("NHOST_GRAPHQL_URL")

        auth_url = _first_derived(
            "auth",
            [get("NHOST_AUTH_URL"), get("NHOST_AUTH_ADMIN_URL"), graphql_url, get("NHOST_BACKEND_URL")],
            region,
            subdomain,
        )
        storage_url = _first_derived(
            "storage",
            [get("NHOST_STORAGE_URL"), get("NHOST_BACKEND_URL"), graphql_url],
            region,
            subdomain,
        )

        super_admin_email = get("SUPER_ADMIN_EMAIL")

        return cls(
            auth_url=auth_url,
            graphql_url=graphql_url,
            storage_url=storage_url,
            admin_secret=get("NHOST_ADMIN_SECRET") or get("HASURA_GRAPHQL_ADMIN_SECRET"),
            service_override_token=get("SERVICE_OVERRIDE_TOKEN"),
            proof_bucket=get("PROOF_BUCKET_ID") or DEFAULT_PROOF_BUCKET,
            max_upload_bytes=_int(get("MAX_UPLOAD_BYTES"), DEFAULT_MAX_UPLOAD_BYTES),
            request_timeout=_float(get("HTTP_TIMEOUT_SECONDS"), 30.0),
            cors_origin=get("CORS_ALLOW_ORIGIN") or "*",
            super_admin_email=super_admin_email.lower() if super_admin_email else None,
            lookup_policy=RetryPolicy(
                max_attempts=_int(get("LOOKUP_MAX_ATTEMPTS"), DEFAULT_LOOKUP_POLICY.max_attempts),
                interval=_float(get("LOOKUP_INTERVAL_SECONDS"), DEFAULT_LOOKUP_POLICY.interval),
            ),
            domain_retry=RetryPolicy(
                max_attempts=_int(get("DOMAIN_RETRY_ATTEMPTS"), DEFAULT_DOMAIN_RETRY.max_attempts),
                interval=_float(get("DOMAIN_RETRY_INTERVAL_SECONDS"), DEFAULT_DOMAIN_RETRY.interval),
            ),
        )

    def missing(self, *names: str) -> List[str]:
        """Return the names of required fields that are empty."""
        return [name for name in names if not getattr(self, name)]

    def validate(self, *required: str) -> "Settings":
        """
        Raise ConfigError if any required field is empty.

        Args:
            *required: Field names the caller needs (defaults to graphql_url)

        Returns:
            self, for chaining
        """
        missing = self.missing(*(required or ("graphql_url",)))
        if missing:
            raise ConfigError(
                "Missing configuration: " + ", ".join(missing),
                {"missing": missing},
            )
        return self


def _first_derived(
    service: str,
    candidates: List[Optional[str]],
    region: Optional[str],
    subdomain: Optional[str],
) -> Optional[str]:
    explicit, siblings = candidates[0], candidates[1:]
    if explicit:
        # Non-Nhost URLs (self-hosted, local dev) are used verbatim
        return derive_service_url(explicit, service, region) or explicit.rstrip("/")

    for raw in siblings:
        url = derive_service_url(raw, service, region)
        if url:
            logger.warning("Derived service URL from sibling setting", service=service, url=url)
            return url

    url = service_url_from_subdomain(subdomain, region, service)
    if url:
        logger.warning("Derived service URL from subdomain and region", service=service, url=url)
    return url


def _int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Invalid integer setting: {raw}")


def _float(raw: Optional[str], default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"Invalid number setting: {raw}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Resolve settings once per process."""
    return Settings.from_env()
