"""
S3 compatible blob store (AWS S3, MinIO) built on boto3.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..services.plugins.exceptions import NotFoundError, StorageError
from ..utils.logging_security import sanitize_error_message_for_log, sanitize_path_for_log
from .base import BlobStore

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3BlobStore(BlobStore):
    """
    Blob store backed by an S3 bucket.

    Example:
        >>> store = S3BlobStore.from_settings(get_settings())
        >>> store.put("plugins/demo/1.0.0/demo-1.0.0.tgz", data, "application/gzip")
    """

    def __init__(self, client: Any, bucket: str, region: Optional[str] = None):
        """
        Args:
            client: boto3 S3 client
            bucket: Bucket holding artifacts and icons
            region: Region used when the bucket has to be created
        """
        self.client = client
        self.bucket = bucket
        self.region = region

    @classmethod
    def from_settings(cls, settings: Any) -> "S3BlobStore":
        """Build a client from Settings (endpoint, credentials, region)."""
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        return cls(client, settings.s3_bucket, settings.s3_region)

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            if _error_code(e) not in _MISSING_CODES:
                raise StorageError(
                    "failed to check bucket", details={"error": sanitize_error_message_for_log(e)}
                ) from e
        except BotoCoreError as e:
            raise StorageError(
                "failed to check bucket", details={"error": sanitize_error_message_for_log(e)}
            ) from e

        try:
            kwargs = {"Bucket": self.bucket}
            if self.region and self.region != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
            self.client.create_bucket(**kwargs)
            logger.info(f"Created bucket {sanitize_path_for_log(self.bucket)}")
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                "failed to create bucket", details={"error": sanitize_error_message_for_log(e)}
            ) from e

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentLength=len(data),
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Upload of {sanitize_path_for_log(key)} failed: {sanitize_error_message_for_log(e)}"
            )
            raise StorageError("failed to upload object", details={"key": key}) from e
        logger.debug(f"Uploaded {sanitize_path_for_log(key)} ({len(data)} bytes)")
        return key

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise NotFoundError("file", key) from e
            logger.error(
                f"Download of {sanitize_path_for_log(key)} failed: {sanitize_error_message_for_log(e)}"
            )
            raise StorageError("failed to get object", details={"key": key}) from e
        except BotoCoreError as e:
            raise StorageError("failed to get object", details={"key": key}) from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Delete of {sanitize_path_for_log(key)} failed: {sanitize_error_message_for_log(e)}"
            )
            raise StorageError("failed to delete object", details={"key": key}) from e
        logger.debug(f"Deleted {sanitize_path_for_log(key)}")

    def presigned_download_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError("failed to generate download URL", details={"key": key}) from e
