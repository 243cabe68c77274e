"""
GraphQL client for the Hasura endpoint.
"""

from typing import Any, Dict, Optional

from .errors import ConfigError, UpstreamError
from .http_client import BackendClient, parse_payload, raise_for_upstream


def first_row(value: Any) -> Optional[Any]:
    """
    Normalize a Hasura function result.

    Set-returning functions come back as arrays, scalar ones as objects.
    """
    if isinstance(value, list):
        return value[0] if value else None
    return value


class GraphQLClient:
    """Executes queries and mutations against one GraphQL endpoint."""

    def __init__(self, client: BackendClient, url: Optional[str] = None) -> None:
        self.client = client
        self.url = url or client.settings.graphql_url
        if not self.url:
            raise ConfigError("Missing configuration: graphql_url", {"missing": ["graphql_url"]})

    def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        *,
        credential: Optional[str] = None,
        admin: bool = False,
        role: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Execute a document and return its ``data``.

        Args:
            query: GraphQL document
            variables: Document variables
            credential: Caller or service bearer credential
            admin: Authenticate with the admin secret instead of a credential
            role: Optional ``x-hasura-role`` claim

        Raises:
            UpstreamError: On non-2xx responses or a non-empty ``errors`` list
        """
        if admin:
            headers = dict(self.client.admin_headers())
        elif credential:
            headers = self.client.bearer_headers(credential)
        else:
            headers = {}
        if role:
            headers["x-hasura-role"] = role

        body: Dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables

        response = self.client.request("POST", self.url, json=body, headers=headers)
        raise_for_upstream(response, "GraphQL")

        payload = parse_payload(response)
        if not isinstance(payload, dict):
            raise UpstreamError("GraphQL returned a non-JSON body", response.status_code, payload)

        errors = payload.get("errors") or []
        if errors:
            message = " | ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors)
            raise UpstreamError(message, response.status_code, payload)

        return payload.get("data") or {}
