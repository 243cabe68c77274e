"""
Create an employee in any clinic account (super-admin only).

Body: {"account_id": uuid, "email": str, "password": str}
"""

from typing import Any, Dict

from ..utils.auth import AuthContext, require_super_admin
from ..utils.config import get_settings
from ..utils.logging import StructuredLogger
from ..utils.provisioning import DomainOperation, ProvisioningPlan, ProvisioningRequest, run_plan
from ..utils.responses import api_handler
from ..utils.validation import normalize_email, require_fields, text

CREATE_EMPLOYEE_MUTATION = """
mutation CreateEmployee($account: uuid!, $email: String!, $password: String!) {
  admin_create_employee_full(
    args: {p_account: $account, p_email: $email, p_password: $password}
  ) {
    ok
    error
    account_id
    user_uid
    role
  }
}
"""


def _authorize(context: AuthContext, body: Dict[str, Any]) -> None:
    require_super_admin(context, get_settings().super_admin_email)


def _build_request(body: Dict[str, Any], context: AuthContext) -> ProvisioningRequest:
    account_id = text(body.get("account_id"))
    email = normalize_email(body.get("email"))
    password = str(body.get("password") or "")
    require_fields(account_id=account_id, email=email, password=password)

    return ProvisioningRequest(
        email=email,
        password=password,
        operation=DomainOperation(
            root_field="admin_create_employee_full",
            document=CREATE_EMPLOYEE_MUTATION,
            variables={"account": account_id, "email": email, "password": password},
            use_admin=True,
        ),
    )


PLAN = ProvisioningPlan(
    name="admin_create_employee",
    authorize=_authorize,
    build_request=_build_request,
)


@api_handler("admin_create_employee")
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    return run_plan(event, PLAN, logger)
