"""
In-process blob store for local development (storage_backend=memory).
"""

import logging
import threading
import time
from typing import Dict, Tuple
from urllib.parse import quote

from ..services.plugins.exceptions import NotFoundError
from .base import BlobStore

logger = logging.getLogger(__name__)


class InMemoryBlobStore(BlobStore):
    """Keeps objects in a dict; contents vanish with the process."""

    def __init__(self, bucket: str = "memory"):
        self.bucket = bucket
        self._objects: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self._objects[key] = (bytes(data), content_type)
        return key

    def get(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise NotFoundError("file", key)
            return self._objects[key][0]

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def presigned_download_url(self, key: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        return f"memory://{self.bucket}/{quote(key)}?expires={expires}"

    def keys(self):
        """Snapshot of stored keys."""
        with self._lock:
            return sorted(self._objects)
