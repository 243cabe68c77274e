"""
Create a clinic and its owner account.

Callable by super-admins only. Ensures the owner's auth identity exists, then
runs ``admin_create_owner_full`` with the admin secret. If the mutation fails
and the identity was created by this request, it is deleted again.

Body: {"clinic_name": str, "owner_email": str, "owner_password": str}
"""

from typing import Any, Dict

from ..utils.auth import AuthContext, require_super_admin
from ..utils.config import get_settings
from ..utils.logging import StructuredLogger
from ..utils.provisioning import DomainOperation, ProvisioningPlan, ProvisioningRequest, run_plan
from ..utils.responses import api_handler
from ..utils.validation import normalize_email, require_fields, text

CREATE_OWNER_MUTATION = """
mutation CreateOwner($clinic: String!, $email: String!, $password: String!) {
  admin_create_owner_full(
    args: {p_clinic_name: $clinic, p_owner_email: $email, p_owner_password: $password}
  ) {
    ok
    error
    account_id
    owner_uid
    user_uid
    role
  }
}
"""


def _authorize(context: AuthContext, body: Dict[str, Any]) -> None:
    require_super_admin(context, get_settings().super_admin_email)


def _build_request(body: Dict[str, Any], context: AuthContext) -> ProvisioningRequest:
    clinic_name = text(body.get("clinic_name"))
    email = normalize_email(body.get("owner_email"))
    password = str(body.get("owner_password") or "")
    require_fields(clinic_name=clinic_name, owner_email=email, owner_password=password)

    return ProvisioningRequest(
        email=email,
        password=password,
        operation=DomainOperation(
            root_field="admin_create_owner_full",
            document=CREATE_OWNER_MUTATION,
            variables={"clinic": clinic_name, "email": email, "password": password},
            use_admin=True,
        ),
    )


PLAN = ProvisioningPlan(
    name="admin_create_owner",
    authorize=_authorize,
    build_request=_build_request,
)


@api_handler("admin_create_owner")
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    """
    Create a clinic owner.

    Returns:
        The mutation row: ok, account_id, owner_uid, user_uid, role
    """
    return run_plan(event, PLAN, logger)
