"""Object storage abstract class."""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised when an object storage operation fails."""

    pass


class ObjectStorage(ABC):
    """Bucket/path addressed blob store with public URLs."""

    @abstractmethod
    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        """Store an object.

        Args:
            bucket: Bucket name.
            path: Object path inside the bucket.
            data: Object bytes.
            content_type: MIME type recorded with the object.
            upsert: Overwrite an existing object at the same path.

        Returns:
            The stored object path.

        Raises:
            StorageError: If the object could not be written.
        """
        ...

    @abstractmethod
    def public_url(self, bucket: str, path: str) -> str:
        """Public URL of an object."""
        ...

    @abstractmethod
    def remove(self, bucket: str, paths: list[str]) -> None:
        """Remove objects in bulk. Missing paths are ignored.

        Raises:
            StorageError: If the removal request failed.
        """
        ...
