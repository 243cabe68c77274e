"""
Object storage helpers: multipart upload and presigned URLs.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .errors import ConfigError, UpstreamError
from .http_client import BackendClient, error_message, parse_payload

# (use "file[]"/"metadata[]" field names, include metadata)
UPLOAD_SHAPES: List[Tuple[bool, bool]] = [
    (False, True),
    (True, True),
    (False, False),
    (True, False),
]


class StorageService:
    """
    Storage service client authenticated with the admin secret.

    Args:
        client: Per-request backend client
        storage_url: Storage base URL (defaults to settings.storage_url)
        bucket: Bucket used for uploads and allowed for signing
    """

    def __init__(
        self,
        client: BackendClient,
        storage_url: Optional[str] = None,
        bucket: Optional[str] = None,
    ) -> None:
        settings = client.settings
        self.client = client
        self.storage_url = (storage_url or settings.storage_url or "").rstrip("/")
        self.bucket = bucket or settings.proof_bucket
        missing = settings.missing("admin_secret")
        if not self.storage_url:
            missing.insert(0, "storage_url")
        if missing:
            raise ConfigError("Missing storage config", {"missing": missing})

    def upload(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Upload one file to the bucket.

        Storage versions disagree on multipart field names, so each known
        shape is tried until one is accepted.

        Returns:
            The storage service's response payload

        Raises:
            UpstreamError: With the last attempt's status passed through
        """
        response = None
        for array_fields, include_metadata in UPLOAD_SHAPES:
            suffix = "[]" if array_fields else ""
            data = {"bucket-id": self.bucket}
            if include_metadata and metadata:
                data[f"metadata{suffix}"] = json.dumps(metadata)
            files = {f"file{suffix}": (filename, content, mime_type)}

            response = self.client.request(
                "POST",
                f"{self.storage_url}/files",
                data=data,
                files=files,
                headers={"x-hasura-admin-secret": self.client.settings.admin_secret or ""},
            )
            if response.is_success:
                return parse_payload(response)

        raise _passthrough_error(response, "Upload failed")

    def get_metadata(self, file_id: str) -> Dict[str, Any]:
        """
        Fetch file metadata.

        Raises:
            UpstreamError: With the upstream status passed through
        """
        response = self.client.request(
            "GET",
            f"{self.storage_url}/files/{file_id}",
            headers={"x-hasura-admin-secret": self.client.settings.admin_secret or ""},
        )
        if not response.is_success:
            raise _passthrough_error(response, "Metadata lookup failed")
        payload = parse_payload(response)
        return payload if isinstance(payload, dict) else {}

    def presign(self, file_id: str, expires_in: int) -> Any:
        """
        Get a presigned URL for a file.

        Tries each known method/path shape until one succeeds.

        Raises:
            UpstreamError: With the last attempt's status passed through
        """
        headers = {"x-hasura-admin-secret": self.client.settings.admin_secret or ""}
        base = f"{self.storage_url}/files/{file_id}"
        attempts = [
            ("POST", f"{base}/presigned", {"json": {"expiresIn": expires_in}}),
            ("GET", f"{base}/presigned", {"params": {"expiresIn": expires_in}}),
            ("GET", f"{base}/presignedurl", {"params": {"expiresIn": expires_in}}),
        ]

        response = None
        for method, url, kwargs in attempts:
            response = self.client.request(method, url, headers=headers, **kwargs)
            if response.is_success:
                return parse_payload(response)
            if response.status_code not in (404, 405):
                break

        raise _passthrough_error(response, "Sign failed")


def _passthrough_error(response: httpx.Response, default: str) -> UpstreamError:
    payload = parse_payload(response)
    return UpstreamError(
        error_message(payload, default),
        response.status_code,
        payload,
        status_code=response.status_code,
    )
