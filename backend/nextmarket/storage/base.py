"""
Blob store contract.

Objects are addressed by deterministic keys (see ``paths``). ``put`` overwrites
an existing object with the same key, which makes re-uploads idempotent.
"""

from abc import ABC, abstractmethod


class BlobStore(ABC):
    """Abstract object storage used for plugin artifacts and icons."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store bytes under a key.

        Returns:
            The key the object was stored under

        Raises:
            StorageError: If the object could not be written
        """

    @abstractmethod
    def get(self, key: str) -> bytes:
        """
        Read an object.

        Raises:
            NotFoundError: If no object exists under the key
            StorageError: On any other failure
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete an object. Deleting a missing key is not an error.

        Raises:
            StorageError: If the backend rejects the request
        """

    @abstractmethod
    def presigned_download_url(self, key: str, ttl_seconds: int) -> str:
        """
        Time-limited URL that downloads the object without credentials.

        Raises:
            StorageError: If the URL could not be generated
        """
