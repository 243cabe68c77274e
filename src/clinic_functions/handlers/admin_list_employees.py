"""
List the members of a clinic account with their emails.

Allowed for super-admins and for owners or admins of the account. The
``list_employees_with_email`` function is queried with the caller's
credential; when it is unavailable the membership table and the auth users
table are read with the admin secret instead.

Body: {"account_id": uuid}
"""

from typing import Any, Dict, List

from ..utils.auth import require_owner_or_admin, resolve_auth_context
from ..utils.config import get_settings
from ..utils.errors import UpstreamError
from ..utils.events import get_bearer, parse_body
from ..utils.graphql import GraphQLClient
from ..utils.http_client import BackendClient
from ..utils.logging import StructuredLogger
from ..utils.responses import api_handler
from ..utils.validation import require_fields, text

LIST_EMPLOYEES_QUERY = """
query ListEmployees($account: uuid!) {
  list_employees_with_email(args: {p_account: $account}) {
    user_uid
    email
    role
    disabled
    created_at
  }
}
"""

ACCOUNT_MEMBERS_QUERY = """
query AccountMembers($account: uuid!) {
  account_users(where: {account_id: {_eq: $account}}) {
    user_uid
    role
    disabled
    created_at
  }
}
"""

USER_EMAILS_QUERY = """
query UserEmails($ids: [uuid!]!) {
  users(where: {id: {_in: $ids}}) {
    id
    email
  }
}
"""


def _employee(row: Dict[str, Any], email: str) -> Dict[str, Any]:
    return {
        "user_uid": row.get("user_uid"),
        "email": email,
        "role": row.get("role"),
        "disabled": bool(row.get("disabled")),
        "created_at": row.get("created_at"),
    }


def _members_with_admin_lookup(graphql: GraphQLClient, account_id: str) -> List[Dict[str, Any]]:
    data = graphql.execute(ACCOUNT_MEMBERS_QUERY, {"account": account_id}, admin=True)
    members = [row for row in data.get("account_users") or [] if isinstance(row, dict)]
    ids = [row["user_uid"] for row in members if row.get("user_uid")]
    if not ids:
        return []

    users = graphql.execute(USER_EMAILS_QUERY, {"ids": ids}, admin=True).get("users") or []
    emails = {user.get("id"): user.get("email") or "" for user in users if isinstance(user, dict)}
    return [_employee(row, emails.get(row.get("user_uid"), "")) for row in members]


@api_handler("admin_list_employees", methods=("POST",))
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    """
    List account members sorted by email.

    Returns:
        {"employees": [{user_uid, email, role, disabled, created_at}, ...]}
    """
    credential = get_bearer(event)
    settings = get_settings().validate("graphql_url")

    with BackendClient(settings) as client:
        graphql = GraphQLClient(client)
        caller = resolve_auth_context(graphql, credential)
        require_owner_or_admin(caller)

        body = parse_body(event)
        account_id = text(body.get("account_id"))
        require_fields(account_id=account_id)
        require_owner_or_admin(caller, account_id)

        try:
            data = graphql.execute(LIST_EMPLOYEES_QUERY, {"account": account_id}, credential=credential)
            rows = [row for row in data.get("list_employees_with_email") or [] if isinstance(row, dict)]
            employees = [_employee(row, row.get("email") or "") for row in rows]
        except UpstreamError as e:
            if not settings.admin_secret:
                raise
            logger.warning("Employee listing function unavailable, using admin lookup", error=e.message)
            employees = _members_with_admin_lookup(graphql, account_id)

    employees.sort(key=lambda employee: employee["email"].lower())
    return {"employees": employees}
