"""
Owner-initiated employee creation.

The caller must be the owner of a clinic on a paid plan. The mutation runs
with the caller's own credential so the database enforces the account's
employee limit; the service override credential is only tried if the
caller's credential is refused.

Body: {"email": str, "password": str}
"""

from typing import Any, Dict

from ..utils.auth import AuthContext, require_owner
from ..utils.logging import StructuredLogger
from ..utils.provisioning import DomainOperation, ProvisioningPlan, ProvisioningRequest, run_plan
from ..utils.responses import api_handler
from ..utils.validation import normalize_email, require_fields, validate_email

OWNER_CREATE_EMPLOYEE_MUTATION = """
mutation OwnerCreateEmployee($email: String!, $password: String!) {
  owner_create_employee_within_limit(
    args: {p_email: $email, p_password: $password}
  ) {
    ok
    error
    account_id
    user_uid
    role
    disabled
  }
}
"""


def _authorize(context: AuthContext, body: Dict[str, Any]) -> None:
    require_owner(context)


def _build_request(body: Dict[str, Any], context: AuthContext) -> ProvisioningRequest:
    email = normalize_email(body.get("email"))
    password = str(body.get("password") or "")
    require_fields(email=email, password=password)
    validate_email(email)

    return ProvisioningRequest(
        email=email,
        password=password,
        operation=DomainOperation(
            root_field="owner_create_employee_within_limit",
            document=OWNER_CREATE_EMPLOYEE_MUTATION,
            variables={"email": email, "password": password},
        ),
        plan_account_id=context.account_id,
    )


PLAN = ProvisioningPlan(
    name="owner_create_employee",
    authorize=_authorize,
    build_request=_build_request,
    require_paid_plan=True,
)


@api_handler("owner_create_employee")
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    """
    Create an employee in the caller's clinic.

    Returns:
        The mutation row: ok, account_id, user_uid, role, disabled
    """
    return run_plan(event, PLAN, logger)
