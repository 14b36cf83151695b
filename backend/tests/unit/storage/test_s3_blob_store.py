"""
Unit tests for S3BlobStore using botocore's Stubber.

No network traffic: every S3 call is answered by the stub.
"""

import io
from unittest.mock import patch

import boto3
import pytest
from botocore.config import Config as BotoConfig
from botocore.response import StreamingBody
from botocore.stub import Stubber

from nextmarket.services.plugins.exceptions import NotFoundError, StorageError
from nextmarket.storage import InMemoryBlobStore, S3BlobStore, create_blob_store

BUCKET = "next-market-plugins"
KEY = "plugins/demo/1.0.0/demo-1.0.0.tgz"


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        endpoint_url="http://localhost:9000",
        aws_access_key_id="test-access-key",  # pragma: allowlist secret
        aws_secret_access_key="test-secret-key",  # pragma: allowlist secret
        region_name="us-east-1",
        config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


@pytest.fixture
def store(s3_client) -> S3BlobStore:
    return S3BlobStore(s3_client, BUCKET, "us-east-1")


@pytest.mark.unit
class TestPutGetDelete:
    """Test object operations."""

    def test_put(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_response(
                "put_object",
                {},
                {
                    "Bucket": BUCKET,
                    "Key": KEY,
                    "Body": b"tarball",
                    "ContentLength": 7,
                    "ContentType": "application/gzip",
                },
            )

            assert store.put(KEY, b"tarball", "application/gzip") == KEY
            stub.assert_no_pending_responses()

    def test_put_failure_raises_storage_error(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_client_error("put_object", service_error_code="InternalError", http_status_code=500)

            with pytest.raises(StorageError):
                store.put(KEY, b"tarball", "application/gzip")

    def test_get(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_response(
                "get_object",
                {"Body": StreamingBody(io.BytesIO(b"tarball"), 7)},
                {"Bucket": BUCKET, "Key": KEY},
            )

            assert store.get(KEY) == b"tarball"

    def test_get_missing_key(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

            with pytest.raises(NotFoundError):
                store.get(KEY)

    def test_get_access_denied(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_client_error("get_object", service_error_code="AccessDenied", http_status_code=403)

            with pytest.raises(StorageError):
                store.get(KEY)

    def test_delete(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_response("delete_object", {}, {"Bucket": BUCKET, "Key": KEY})

            store.delete(KEY)
            stub.assert_no_pending_responses()

    def test_delete_failure(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)

            with pytest.raises(StorageError):
                store.delete(KEY)

    def test_presigned_url(self, store) -> None:
        url = store.presigned_download_url(KEY, 3600)

        assert url.startswith(f"http://localhost:9000/{BUCKET}/{KEY}")
        assert "X-Amz-Expires=3600" in url
        assert "X-Amz-Signature=" in url


@pytest.mark.unit
class TestEnsureBucket:
    """Test bucket bootstrap."""

    def test_existing_bucket_left_alone(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_response("head_bucket", {}, {"Bucket": BUCKET})

            store.ensure_bucket()
            stub.assert_no_pending_responses()

    def test_missing_bucket_created(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
            stub.add_response("create_bucket", {}, {"Bucket": BUCKET})

            store.ensure_bucket()
            stub.assert_no_pending_responses()

    def test_region_constraint_outside_us_east_1(self, s3_client) -> None:
        store = S3BlobStore(s3_client, BUCKET, "eu-central-1")
        with Stubber(s3_client) as stub:
            stub.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
            stub.add_response(
                "create_bucket",
                {},
                {"Bucket": BUCKET, "CreateBucketConfiguration": {"LocationConstraint": "eu-central-1"}},
            )

            store.ensure_bucket()
            stub.assert_no_pending_responses()

    def test_forbidden_bucket_raises(self, store, s3_client) -> None:
        with Stubber(s3_client) as stub:
            stub.add_client_error("head_bucket", service_error_code="403", http_status_code=403)

            with pytest.raises(StorageError):
                store.ensure_bucket()


@pytest.mark.unit
class TestFactory:
    """Test create_blob_store and S3BlobStore.from_settings."""

    def test_memory_backend(self, settings) -> None:
        assert isinstance(create_blob_store(settings), InMemoryBlobStore)

    def test_s3_backend_from_settings(self, settings) -> None:
        s3_settings = settings.model_copy(
            update={"storage_backend": "s3", "s3_endpoint": "minio:9000", "s3_bucket": "plugins"}
        )

        with patch.object(S3BlobStore, "ensure_bucket") as ensure_bucket:
            store = create_blob_store(s3_settings)

        assert isinstance(store, S3BlobStore)
        assert store.bucket == "plugins"
        assert store.client.meta.endpoint_url == "http://minio:9000"
        ensure_bucket.assert_called_once_with()
