"""
Identity provisioning with compensation.

Flow for every "create a user and attach it to an account" function:

1. ensure the auth identity exists (create it, or reuse the one with the same
   email);
2. run the privileged domain mutation that needs that identity;
3. if step 2 fails and step 1 created the identity, delete it again.

This is not a transaction. If the process dies between steps 1 and 2 the
identity stays behind without a domain record.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from .auth import AuthContext, require_paid_plan, resolve_auth_context
from .config import Settings, get_settings
from .errors import DomainError, UpstreamError
from .events import get_bearer, parse_body
from .graphql import GraphQLClient, first_row
from .http_client import BackendClient
from .identity import Identity, IdentityService
from .logging import StructuredLogger, get_logger
from .retry import RetryPolicy

# Fragments of backend errors raised when the domain database cannot see an
# identity that the auth service just created
TRANSIENT_MARKERS = ("auth user not found", "user not found in auth")

# Role claim sent with the service override credential
OVERRIDE_ROLE = "admin"


@dataclass(frozen=True)
class DomainOperation:
    """
    A privileged mutation returning ``{ok, error, ...}`` rows.

    Attributes:
        root_field: Root field of the mutation, used to read the result
        document: GraphQL document
        variables: Document variables
        use_admin: Run with the admin secret instead of the caller credential
        transient_markers: Error fragments that trigger one delayed retry
    """

    root_field: str
    document: str
    variables: Dict[str, Any] = field(default_factory=dict)
    use_admin: bool = False
    transient_markers: Tuple[str, ...] = TRANSIENT_MARKERS

    def is_transient(self, error: Exception) -> bool:
        message = str(error).lower()
        return any(marker in message for marker in self.transient_markers)


def operation_result(operation: DomainOperation, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract the result row of an operation.

    Raises:
        DomainError: When the row is missing or its ``ok`` flag is not true
    """
    row = first_row(data.get(operation.root_field))
    if not isinstance(row, dict):
        row = {"ok": False, "error": "No data"}
    if row.get("ok") is not True:
        details = {k: v for k, v in row.items() if k not in ("ok", "error") and v is not None}
        raise DomainError(str(row.get("error") or "Failed"), details)
    return row


class ProvisioningCoordinator:
    """
    Runs the provisioning flow for one request.

    Args:
        identities: Identity service bound to the request's backend client
        graphql: GraphQL client bound to the same backend client
        settings: Resolved settings (override credential, retry policy)
        domain_retry: Retry for transient domain failures (defaults to settings)
    """

    def __init__(
        self,
        identities: IdentityService,
        graphql: GraphQLClient,
        settings: Settings,
        domain_retry: Optional[RetryPolicy] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.identities = identities
        self.graphql = graphql
        self.settings = settings
        self.domain_retry = domain_retry or settings.domain_retry
        self.logger = logger or get_logger(__name__)

    def ensure_identity(self, email: str, password: str) -> Identity:
        """Create-or-get the identity for ``email``."""
        return self.identities.ensure_identity(email, password)

    def invoke_domain_operation(self, operation: DomainOperation, context: AuthContext) -> Dict[str, Any]:
        """
        Run a domain operation and return its result row.

        A transient failure is retried after the policy's fixed delay; with the
        default policy that is exactly one retry.

        Raises:
            DomainError: If the backend reports ``ok`` false
            UpstreamError: If the call itself fails
        """
        policy = self.domain_retry
        attempt = 1
        while True:
            try:
                data = self._execute(operation, context)
                return operation_result(operation, data)
            except (UpstreamError, DomainError) as e:
                if attempt >= policy.max_attempts or not operation.is_transient(e):
                    raise
                self.logger.warning(
                    "Transient domain failure, retrying",
                    operation=operation.root_field,
                    attempt=attempt,
                    error=e.message,
                )
                policy.wait()
                attempt += 1

    def _execute(self, operation: DomainOperation, context: AuthContext) -> Dict[str, Any]:
        if operation.use_admin:
            return self.graphql.execute(operation.document, operation.variables, admin=True)

        try:
            return self.graphql.execute(operation.document, operation.variables, credential=context.credential)
        except UpstreamError as e:
            override = self.settings.service_override_token
            if not override or not e.is_auth_failure:
                raise
            # Fallback only: the caller's own credential was refused first
            self.logger.warning(
                "Caller credential refused, retrying with override credential",
                operation=operation.root_field,
                error=e.message,
            )
            return self.graphql.execute(
                operation.document,
                operation.variables,
                credential=override,
                role=OVERRIDE_ROLE,
            )

    def run_provisioning_flow(
        self,
        email: str,
        password: str,
        operation: DomainOperation,
        context: AuthContext,
    ) -> Dict[str, Any]:
        """
        Ensure the identity, run the operation, compensate on failure.

        Errors from the identity step propagate unchanged. Errors from the
        operation propagate unchanged after the compensating delete.
        """
        identity = self.ensure_identity(email, password)

        try:
            result = self.invoke_domain_operation(operation, context)
        except Exception:
            if identity.was_created:
                self._compensate(identity)
            raise

        self.logger.info(
            "Provisioning completed",
            operation=operation.root_field,
            identity_id=identity.id,
            created=identity.was_created,
        )
        return result

    def _compensate(self, identity: Identity) -> None:
        """Best-effort delete of an identity created in this request."""
        try:
            deleted = self.identities.delete(identity.id, identity.endpoint)
        except Exception as e:
            self.logger.warning("Compensating delete failed", identity_id=identity.id, error=str(e))
            return
        self.logger.info("Compensating delete issued", identity_id=identity.id, deleted=deleted)


@dataclass(frozen=True)
class ProvisioningRequest:
    """Validated input for one provisioning flow."""

    email: str
    password: str
    operation: DomainOperation
    plan_account_id: Optional[str] = None


@dataclass(frozen=True)
class ProvisioningPlan:
    """
    Per-function configuration of the provisioning flow.

    Attributes:
        name: Function name, for logs
        authorize: Raises ForbiddenError unless the caller may run the flow
        build_request: Validates the body and builds the request
        require_paid_plan: Gate on the target account being paid
    """

    name: str
    authorize: Callable[[AuthContext, Dict[str, Any]], None]
    build_request: Callable[[Dict[str, Any], AuthContext], ProvisioningRequest]
    require_paid_plan: bool = False


def run_plan(
    event: Dict[str, Any],
    plan: ProvisioningPlan,
    logger: Optional[StructuredLogger] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Run a provisioning plan for an inbound event.

    Order: credential present (401) -> configuration -> caller context ->
    authorization (403) -> input validation (400) -> plan gate (403) ->
    provisioning flow. Nothing reaches the identity service before the caller
    is authorized.
    """
    logger = logger or get_logger(plan.name)
    credential = get_bearer(event)
    settings = (settings or get_settings()).validate("graphql_url")
    body = parse_body(event)

    with BackendClient(settings) as client:
        graphql = GraphQLClient(client)
        context = resolve_auth_context(graphql, credential)
        plan.authorize(context, body)

        request = plan.build_request(body, context)

        if plan.require_paid_plan:
            require_paid_plan(graphql, context, request.plan_account_id)

        coordinator = ProvisioningCoordinator(
            IdentityService(client, logger=logger),
            graphql,
            settings,
            logger=logger,
        )
        return coordinator.run_provisioning_flow(
            request.email,
            request.password,
            request.operation,
            context,
        )
