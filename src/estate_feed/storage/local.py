"""Object storage on the local filesystem."""

import logging
from pathlib import Path

from estate_feed.storage.base import ObjectStorage, StorageError

logger = logging.getLogger(__name__)

# Default media storage directory
DEFAULT_MEDIA_DIR = Path(__file__).parent.parent.parent.parent / "data" / "media"


class LocalObjectStorage(ObjectStorage):
    """Stores objects as files under ``<root>/<bucket>/<path>``."""

    def __init__(self, root: Path | None = None, public_base_url: str | None = None) -> None:
        """Initialize storage.

        Args:
            root: Media root directory. Defaults to data/media/.
            public_base_url: URL prefix serving the media root. Without it
                public URLs are file:// URIs.
        """
        self._root = root or DEFAULT_MEDIA_DIR
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, bucket: str, path: str) -> Path:
        bucket_dir = (self._root / bucket).resolve()
        target = (bucket_dir / path).resolve()
        if bucket_dir not in target.parents:
            raise StorageError(f"Path escapes bucket: {path}")
        return target

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        target = self._resolve(bucket, path)
        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {bucket}/{path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {bucket}/{path}: {e}") from e
        return path

    def public_url(self, bucket: str, path: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{bucket}/{path}"
        return self._resolve(bucket, path).as_uri()

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            target = self._resolve(bucket, path)
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to remove {bucket}/{path}: {e}") from e
            logger.debug("Removed %s/%s", bucket, path)
