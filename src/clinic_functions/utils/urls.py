"""
Degraded-mode URL heuristics for Nhost service endpoints.

Each backend service normally has its own configured base URL. When one is
missing, these helpers guess it from a sibling service URL
(``https://<sub>.graphql.<region>.nhost.run/v1`` becomes
``https://<sub>.auth.<region>.nhost.run/v1``) or from the project subdomain
and region. They only ever return a URL for ``nhost.run`` hosts.
"""

import re
from typing import List, Optional

NHOST_DOMAIN = "nhost.run"
SERVICES = ("auth", "graphql", "functions", "storage")

_TRAILING_PATHS = [
    re.compile(r"/v1/graphql$", re.IGNORECASE),
    re.compile(r"/graphql$", re.IGNORECASE),
    re.compile(r"/v1$", re.IGNORECASE),
]


def service_url_from_subdomain(
    subdomain: Optional[str], region: Optional[str], service: str
) -> Optional[str]:
    """
    Build a service base URL from the project subdomain and region.

    Examples:
        >>> service_url_from_subdomain('abc', 'eu-central-1', 'auth')
        'https://abc.auth.eu-central-1.nhost.run/v1'
    """
    if not subdomain or not region:
        return None
    return f"https://{subdomain}.{service}.{region}.{NHOST_DOMAIN}/v1"


def _is_service_host(url: str) -> bool:
    return any(f".{service}." in url for service in SERVICES)


def derive_service_url(
    raw: Optional[str], service: str, region: Optional[str] = None
) -> Optional[str]:
    """
    Rewrite a known Nhost URL into the base URL of another service.

    Args:
        raw: Any configured Nhost URL (auth, graphql, functions, storage or backend)
        service: Target service name ("auth" or "storage")
        region: Region used when ``raw`` is a bare ``<sub>.nhost.run`` backend URL

    Returns:
        Base URL ending in ``/v1``, or None when ``raw`` is not an Nhost URL
    """
    if not raw or NHOST_DOMAIN not in raw:
        return None

    url = raw.rstrip("/")

    if not _is_service_host(url):
        if not url.endswith(f".{NHOST_DOMAIN}"):
            return None
        subdomain = url.split("://", 1)[-1].split(f".{NHOST_DOMAIN}")[0]
        return service_url_from_subdomain(subdomain, region, service)

    for other in SERVICES:
        if other != service:
            url = url.replace(f".{other}.", f".{service}.")

    # Admin endpoints are sometimes configured instead of the service root
    url = re.sub(r"/v1/admin/?$", "/v1", url, flags=re.IGNORECASE)
    url = re.sub(r"/admin/?$", "", url, flags=re.IGNORECASE)

    for pattern in _TRAILING_PATHS:
        url = pattern.sub("", url)

    return f"{url}/v1"


def admin_user_endpoints(auth_url: Optional[str]) -> List[str]:
    """
    Ordered candidate URLs for the auth admin users collection.

    Deployments differ on whether the admin API lives under ``/v1``; the
    candidates are probed in order until one does not answer 404.

    Examples:
        >>> admin_user_endpoints('https://abc.auth.eu.nhost.run/v1')
        ['https://abc.auth.eu.nhost.run/v1/admin/users', 'https://abc.auth.eu.nhost.run/admin/users']
    """
    if not auth_url:
        return []
    base = auth_url.rstrip("/")
    root = re.sub(r"/v1$", "", base, flags=re.IGNORECASE)
    candidates = [
        f"{base}/admin/users",
        f"{root}/admin/users",
        f"{root}/v1/admin/users",
    ]
    # Preserve order while dropping duplicates
    return list(dict.fromkeys(candidates))
