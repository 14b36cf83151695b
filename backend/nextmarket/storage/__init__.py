"""
Object storage for plugin artifacts and icons.

Public API:
    - BlobStore: abstract contract (put/get/delete/presigned_download_url)
    - S3BlobStore: boto3 implementation for S3 and MinIO
    - InMemoryBlobStore: development backend
    - create_blob_store: factory driven by Settings.storage_backend
"""

import logging

from ..config import Settings
from .base import BlobStore
from .memory import InMemoryBlobStore
from .paths import (
    ARTIFACT_CONTENT_TYPE,
    icon_content_type,
    icon_object_key,
    icon_public_url,
    plugin_object_key,
)
from .s3 import S3BlobStore

logger = logging.getLogger(__name__)


def create_blob_store(settings: Settings) -> BlobStore:
    """
    Build the blob store selected by the settings.

    The S3 backend makes sure its bucket exists before it is handed out.
    """
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory blob store; uploaded files are lost on restart")
        return InMemoryBlobStore(settings.s3_bucket)

    store = S3BlobStore.from_settings(settings)
    store.ensure_bucket()
    logger.info(f"S3 blob store ready (bucket={settings.s3_bucket})")
    return store


__all__ = [
    "ARTIFACT_CONTENT_TYPE",
    "BlobStore",
    "InMemoryBlobStore",
    "S3BlobStore",
    "create_blob_store",
    "icon_content_type",
    "icon_object_key",
    "icon_public_url",
    "plugin_object_key",
]
