"""
Presigned download URL for a subscription proof (super-admin only).

Only files in the proof bucket may be signed.

Body: {"fileId": str, "expiresIn": int (seconds, default 3600)}
"""

from typing import Any, Dict

from ..utils.auth import require_super_admin, resolve_auth_context
from ..utils.config import get_settings
from ..utils.errors import ForbiddenError
from ..utils.events import get_bearer, parse_body
from ..utils.graphql import GraphQLClient
from ..utils.http_client import BackendClient
from ..utils.logging import StructuredLogger
from ..utils.responses import api_handler
from ..utils.storage import StorageService
from ..utils.validation import require_fields, text

DEFAULT_EXPIRES_IN = 3600


def _expires_in(value: Any) -> int:
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return DEFAULT_EXPIRES_IN
    return seconds if seconds > 0 else DEFAULT_EXPIRES_IN


@api_handler("admin_sign_storage_file", methods=("POST",))
def lambda_handler(event: Dict[str, Any], context: Any, logger: StructuredLogger) -> Dict[str, Any]:
    """
    Sign a proof file.

    Returns:
        The storage service's presign payload (url, expiration)
    """
    credential = get_bearer(event)
    settings = get_settings().validate("graphql_url")

    with BackendClient(settings) as client:
        caller = resolve_auth_context(GraphQLClient(client), credential)
        require_super_admin(caller, settings.super_admin_email)

        body = parse_body(event)
        file_id = text(body.get("fileId"))
        require_fields(fileId=file_id)
        expires_in = _expires_in(body.get("expiresIn"))

        storage = StorageService(client)
        metadata = storage.get_metadata(file_id)
        bucket_id = metadata.get("bucketId")
        if bucket_id and bucket_id != storage.bucket:
            raise ForbiddenError("Bucket not allowed", {"bucketId": bucket_id})

        signed = storage.presign(file_id, expires_in)
        logger.info("Signed storage file", file_id=file_id, expires_in=expires_in)

    return signed if isinstance(signed, dict) else {"url": signed}
