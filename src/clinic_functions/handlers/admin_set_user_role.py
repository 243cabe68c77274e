"""
Attach a user to an account with a role in the auth user's metadata
(super-admin only).

Existing metadata keys are preserved; ``account_id`` and ``role`` are
overwritten.

Body: {"user_uid": str, "account_id": str, "role": str}
(camelCase ``userUid`` and ``accountId`` are accepted)
"""

from typing import Any, Dict

from ..utils.auth import require_super_admin, resolve_auth_context
from ..utils.config import get_settings
from ..utils.errors import NotFoundError
from ..utils.events import get_bearer, parse_body
from ..utils.graphql import GraphQLClient
from ..utils.http_client import BackendClient
from ..utils.identity import IdentityService
from ..utils.logging import StructuredLogger
from ..utils.responses import api_handler
from ..utils.validation import require_fields, text


@api_handler("admin_set_user_role", methods=("POST",))
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    credential = get_bearer(event)
    settings = get_settings().validate("graphql_url", "auth_url", "admin_secret")

    with BackendClient(settings) as client:
        caller = resolve_auth_context(GraphQLClient(client), credential)
        require_super_admin(caller, settings.super_admin_email)

        body = parse_body(event)
        user_uid = text(body.get("user_uid") or body.get("userUid"))
        account_id = text(body.get("account_id") or body.get("accountId"))
        role = text(body.get("role")).lower()
        require_fields(user_uid=user_uid, account_id=account_id, role=role)

        identities = IdentityService(client, logger=logger)
        user = identities.get_user(user_uid)
        if user is None:
            raise NotFoundError("User not found", {"user_uid": user_uid})

        existing = user.get("metadata")
        metadata = dict(existing) if isinstance(existing, dict) else {}
        metadata.update({"account_id": account_id, "role": role})
        identities.update_metadata(user_uid, metadata)

    logger.info("Set user role", user_uid=user_uid, account_id=account_id, role=role)
    return {"user_uid": user_uid, "account_id": account_id, "role": role}
