"""
Upload a subscription payment proof to the proof bucket.

Allowed for super-admins, and for owners or admins of a clinic account (the
file is then tagged with that account). Accepts a direct JSON body or a
Hasura action payload wrapped in ``input``.

Body: {"filename": str, "base64": str | data URL, "mimeType": str}
"""

from typing import Any, Dict

from ..utils.auth import require_owner_or_admin, resolve_auth_context
from ..utils.config import get_settings
from ..utils.events import get_bearer, parse_body, unwrap_input
from ..utils.graphql import GraphQLClient
from ..utils.http_client import BackendClient
from ..utils.logging import StructuredLogger
from ..utils.responses import api_handler
from ..utils.storage import StorageService
from ..utils.validation import decode_base64_payload, text

DEFAULT_FILENAME = "proof"
DEFAULT_MIME_TYPE = "application/octet-stream"


@api_handler("admin_upload_subscription_proof", methods=("POST",))
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    """
    Upload a proof file.

    Returns:
        The storage service's upload payload (file id, name, bucket)
    """
    credential = get_bearer(event)
    settings = get_settings().validate("graphql_url")

    with BackendClient(settings) as client:
        caller = resolve_auth_context(GraphQLClient(client), credential)
        require_owner_or_admin(caller)

        payload = unwrap_input(parse_body(event))
        filename = text(payload.get("filename")) or DEFAULT_FILENAME
        mime_type = text(payload.get("mimeType")) or DEFAULT_MIME_TYPE
        content = decode_base64_payload(payload.get("base64"), settings.max_upload_bytes)

        metadata: Dict[str, Any] = {"name": filename}
        if not caller.is_super_admin and caller.account_id:
            metadata["account_id"] = caller.account_id

        uploaded = StorageService(client).upload(content, filename, mime_type, metadata)
        logger.info(
            "Uploaded subscription proof",
            filename=filename,
            size=len(content),
            account_id=metadata.get("account_id"),
        )

    return uploaded if isinstance(uploaded, dict) else {"result": uploaded}
