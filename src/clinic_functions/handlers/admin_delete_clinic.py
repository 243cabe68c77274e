"""
Delete a clinic account (super-admin only).

Body: {"account_id": uuid} (``clinicId`` is accepted as an alias)
"""

from typing import Any, Dict

from ..utils.auth import require_super_admin, resolve_auth_context
from ..utils.config import get_settings
from ..utils.errors import NotFoundError
from ..utils.events import get_bearer, parse_body
from ..utils.graphql import GraphQLClient
from ..utils.http_client import BackendClient
from ..utils.logging import StructuredLogger
from ..utils.responses import api_handler
from ..utils.validation import require_fields, text

DELETE_ACCOUNT_MUTATION = """
mutation DeleteAccount($id: uuid!) {
  delete_accounts_by_pk(id: $id) { id }
}
"""


@api_handler("admin_delete_clinic", methods=("POST",))
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    credential = get_bearer(event)
    settings = get_settings().validate("graphql_url", "admin_secret")

    with BackendClient(settings) as client:
        graphql = GraphQLClient(client)
        caller = resolve_auth_context(graphql, credential)
        require_super_admin(caller, settings.super_admin_email)

        body = parse_body(event)
        account_id = text(body.get("account_id") or body.get("clinicId"))
        require_fields(account_id=account_id)

        data = graphql.execute(DELETE_ACCOUNT_MUTATION, {"id": account_id}, admin=True)
        if not data.get("delete_accounts_by_pk"):
            raise NotFoundError("Clinic not found", {"account_id": account_id})

    logger.info("Deleted clinic", account_id=account_id)
    return {"account_id": account_id}
