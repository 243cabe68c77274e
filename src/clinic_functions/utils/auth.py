"""
Authorization utilities for edge functions.

The caller's role is resolved by asking the GraphQL backend with the caller's
own bearer credential, so the token is verified by the backend. Claims are
never decoded locally.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import ForbiddenError, PlanError, UnauthenticatedError, UpstreamError
from .graphql import GraphQLClient, first_row
from .validation import normalize_email

CALLER_CONTEXT_QUERY = """
query CallerContext {
  fn_is_super_admin_gql { is_super_admin }
  my_profile { role account_id user_uid email }
}
"""

ACCOUNT_PLAN_QUERY = """
query AccountPlan($account: uuid!) {
  fn_account_is_paid(args: {p_account: $account}) { is_paid plan }
}
"""

OWNER = "owner"
ADMIN = "admin"


@dataclass(frozen=True)
class AuthContext:
    """Per-request authorization context. Never persisted."""

    credential: str = field(repr=False)
    is_super_admin: bool = False
    role: Optional[str] = None
    account_id: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_owner(self) -> bool:
        return self.role == OWNER


def resolve_auth_context(graphql: GraphQLClient, credential: str) -> AuthContext:
    """
    Resolve the caller's role and account from the backend.

    Args:
        graphql: GraphQL client
        credential: Caller's ``Bearer ...`` header value

    Raises:
        UnauthenticatedError: If the backend rejects the credential
        UpstreamError: If the role lookup fails for another reason
    """
    try:
        data = graphql.execute(CALLER_CONTEXT_QUERY, credential=credential)
    except UpstreamError as e:
        if e.is_auth_failure:
            raise UnauthenticatedError("Invalid or expired credential")
        raise UpstreamError(f"Auth check failed: {e.message}", e.upstream_status, e.body)

    super_row = first_row(data.get("fn_is_super_admin_gql"))
    profile = first_row(data.get("my_profile")) or {}

    role = str(profile.get("role") or "").strip().lower() or None
    account_id = str(profile.get("account_id") or "").strip() or None

    return AuthContext(
        credential=credential,
        is_super_admin=isinstance(super_row, dict) and super_row.get("is_super_admin") is True,
        role=role,
        account_id=account_id,
        user_id=profile.get("user_uid"),
        email=normalize_email(profile.get("email")) or None,
    )


def require_super_admin(context: AuthContext, super_admin_email: Optional[str] = None) -> None:
    """
    Require a platform super-admin.

    ``super_admin_email`` names one bootstrap account that is always accepted.

    Raises:
        ForbiddenError: If the caller is not a super-admin
    """
    if context.is_super_admin:
        return
    if super_admin_email and context.email and context.email == super_admin_email.lower():
        return
    raise ForbiddenError("forbidden")


def require_owner(context: AuthContext, account_id: Optional[str] = None) -> None:
    """
    Require the caller to be an owner, of ``account_id`` when given.

    Raises:
        ForbiddenError: If the caller is not that account's owner
    """
    if not context.is_owner:
        raise ForbiddenError("forbidden")
    if account_id and context.account_id != account_id:
        raise ForbiddenError("forbidden")


def require_owner_or_admin(
    context: AuthContext,
    account_id: Optional[str] = None,
    allow_super_admin: bool = True,
) -> None:
    """
    Require a super-admin, or an owner/admin of an account.

    Raises:
        ForbiddenError: If the caller has neither capability
    """
    if allow_super_admin and context.is_super_admin:
        return
    if context.role not in (OWNER, ADMIN) or not context.account_id:
        raise ForbiddenError("forbidden")
    if account_id and context.account_id != account_id:
        raise ForbiddenError("forbidden")


def require_paid_plan(graphql: GraphQLClient, context: AuthContext, account_id: Optional[str]) -> Dict[str, Any]:
    """
    Require the target account to be on a paid plan.

    Returns:
        The plan row reported by the backend

    Raises:
        PlanError: If the account is not paid (or unknown)
    """
    if not account_id:
        raise PlanError("Account plan does not allow this operation")

    data = graphql.execute(ACCOUNT_PLAN_QUERY, {"account": account_id}, credential=context.credential)
    row = first_row(data.get("fn_account_is_paid"))
    if isinstance(row, bool):
        row = {"is_paid": row}
    if not isinstance(row, dict) or row.get("is_paid") is not True:
        plan = row.get("plan") if isinstance(row, dict) else None
        raise PlanError("Account plan does not allow this operation", {"plan": plan} if plan else None)
    return row
