"""Tests for the storage service."""

import httpx
import pytest
from nhost_fakes import ADMIN_SECRET, GRAPHQL_URL, STORAGE_URL, FakeNhost

from clinic_functions.utils.config import Settings
from clinic_functions.utils.errors import ConfigError, UpstreamError
from clinic_functions.utils.http_client import BackendClient
from clinic_functions.utils.storage import StorageService

FILES_URL = f"{STORAGE_URL}/files"
FILE_ID = "f-123"


@pytest.fixture
def storage(backend: BackendClient) -> StorageService:
    return StorageService(backend)


class TestStorageConfig:
    """Tests for StorageService configuration."""

    def test_defaults_from_settings(self, storage: StorageService) -> None:
        """Test the URL and bucket come from settings."""
        assert storage.storage_url == STORAGE_URL
        assert storage.bucket == "subscription-proofs"

    def test_missing_config(self) -> None:
        """Test the storage URL and admin secret are required."""
        with BackendClient(Settings(graphql_url=GRAPHQL_URL)) as client:
            with pytest.raises(ConfigError) as exc_info:
                StorageService(client)

        assert exc_info.value.message == "Missing storage config"
        assert exc_info.value.details == {"missing": ["storage_url", "admin_secret"]}


class TestUpload:
    """Tests for StorageService.upload."""

    def test_first_shape_accepted(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test a single multipart upload with metadata."""
        fake_nhost.on("POST", FILES_URL, httpx.Response(201, json={"id": FILE_ID, "bucketId": "subscription-proofs"}))

        result = storage.upload(b"%PDF", "proof.pdf", "application/pdf", {"name": "proof.pdf"})

        assert result == {"id": FILE_ID, "bucketId": "subscription-proofs"}
        request = fake_nhost.calls("POST", FILES_URL)[0]
        assert request.headers["x-hasura-admin-secret"] == ADMIN_SECRET
        assert request.headers["content-type"].startswith("multipart/form-data")
        content = request.content.decode("latin-1")
        assert 'name="bucket-id"' in content
        assert 'name="metadata"' in content
        assert 'name="file"; filename="proof.pdf"' in content

    def test_falls_through_shapes(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test rejected shapes make the next field layout be tried."""
        fake_nhost.on(
            "POST",
            FILES_URL,
            httpx.Response(400, json={"error": "no file"}),
            httpx.Response(200, json={"processedFiles": [{"id": FILE_ID}]}),
        )

        result = storage.upload(b"x", "proof", "application/octet-stream", {"name": "proof"})

        assert result == {"processedFiles": [{"id": FILE_ID}]}
        second = fake_nhost.calls("POST", FILES_URL)[1].content.decode("latin-1")
        assert 'name="file[]"' in second
        assert 'name="metadata[]"' in second

    def test_all_shapes_rejected(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test the last failure is passed through with its status."""
        fake_nhost.on("POST", FILES_URL, httpx.Response(403, json={"error": {"message": "bucket denied"}}))

        with pytest.raises(UpstreamError) as exc_info:
            storage.upload(b"x", "proof", "application/octet-stream")

        assert exc_info.value.message == "bucket denied"
        assert exc_info.value.status_code == 403
        assert len(fake_nhost.calls("POST", FILES_URL)) == 4


class TestMetadataAndPresign:
    """Tests for get_metadata and presign."""

    def test_get_metadata(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test metadata is fetched by id."""
        fake_nhost.on("GET", f"{FILES_URL}/{FILE_ID}", httpx.Response(200, json={"bucketId": "subscription-proofs"}))

        assert storage.get_metadata(FILE_ID) == {"bucketId": "subscription-proofs"}

    def test_get_metadata_missing(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test a missing file passes the 404 through."""
        with pytest.raises(UpstreamError) as exc_info:
            storage.get_metadata(FILE_ID)

        assert exc_info.value.status_code == 404

    def test_presign_post(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test the POST presign shape is tried first."""
        fake_nhost.on(
            "POST",
            f"{FILES_URL}/{FILE_ID}/presigned",
            httpx.Response(200, json={"url": "https://signed", "expiration": 60}),
        )

        assert storage.presign(FILE_ID, 60) == {"url": "https://signed", "expiration": 60}

    def test_presign_falls_back_on_404_and_405(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test routing failures make the next shape be tried."""
        fake_nhost.on("GET", f"{FILES_URL}/{FILE_ID}/presigned", httpx.Response(405))
        fake_nhost.on("GET", f"{FILES_URL}/{FILE_ID}/presignedurl", httpx.Response(200, json={"url": "https://signed"}))

        assert storage.presign(FILE_ID, 120) == {"url": "https://signed"}
        last = fake_nhost.requests[-1]
        assert last.url.params["expiresIn"] == "120"
        assert len(fake_nhost.requests) == 3

    def test_presign_stops_on_other_errors(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test other failures are passed through immediately."""
        fake_nhost.on("POST", f"{FILES_URL}/{FILE_ID}/presigned", httpx.Response(403, json={"message": "denied"}))

        with pytest.raises(UpstreamError) as exc_info:
            storage.presign(FILE_ID, 60)

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "denied"
        assert len(fake_nhost.requests) == 1

    def test_presign_exhausted(self, storage: StorageService, fake_nhost: FakeNhost) -> None:
        """Test all shapes missing surfaces a 404."""
        with pytest.raises(UpstreamError) as exc_info:
            storage.presign(FILE_ID, 60)

        assert exc_info.value.status_code == 404
        assert len(fake_nhost.requests) == 3
