"""
Owner request for an employee beyond the plan's limit.

The employee is created disabled until the extra seat is approved; the
mutation decides that. Same provisioning flow as owner_create_employee but
without the paid-plan gate.

Body: {"email": str, "password": str}
"""

from typing import Any, Dict

from ..utils.auth import AuthContext, require_owner
from ..utils.logging import StructuredLogger
from ..utils.provisioning import DomainOperation, ProvisioningPlan, ProvisioningRequest, run_plan
from ..utils.responses import api_handler
from ..utils.validation import normalize_email, require_fields

REQUEST_EXTRA_EMPLOYEE_MUTATION = """
mutation OwnerRequestExtraEmployee($email: String!, $password: String!) {
  owner_request_extra_employee(
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

    return ProvisioningRequest(
        email=email,
        password=password,
        operation=DomainOperation(
            root_field="owner_request_extra_employee",
            document=REQUEST_EXTRA_EMPLOYEE_MUTATION,
            variables={"email": email, "password": password},
        ),
    )


PLAN = ProvisioningPlan(
    name="owner_request_extra_employee",
    authorize=_authorize,
    build_request=_build_request,
)


@api_handler("owner_request_extra_employee")
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    return run_plan(event, PLAN, logger)
