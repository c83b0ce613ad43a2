"""Object storage on Supabase Storage."""

import logging

from supabase import Client, create_client
from supabase.client import ClientOptions

from estate_feed.config import SupabaseCredentials
from estate_feed.storage.base import ObjectStorage, StorageError

logger = logging.getLogger(__name__)


def create_supabase_client(credentials: SupabaseCredentials) -> Client:
    """Create a service-role Supabase client without session persistence."""
    options = ClientOptions(
        auto_refresh_token=False,
        persist_session=False,
    )
    return create_client(credentials.url, credentials.service_key, options)


class SupabaseObjectStorage(ObjectStorage):
    """Objects stored in Supabase Storage buckets."""

    def __init__(self, client: Client) -> None:
        """Initialize storage.

        Args:
            client: Supabase client created with a service key.
        """
        self._client = client

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        try:
            self._client.storage.from_(bucket).upload(
                path,
                data,
                file_options={"content-type": content_type, "upsert": "true" if upsert else "false"},
            )
        except Exception as e:
            raise StorageError(f"Supabase upload failed for {bucket}/{path}: {e}") from e
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return self._client.storage.from_(bucket).get_public_url(path)

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        try:
            self._client.storage.from_(bucket).remove(paths)
        except Exception as e:
            raise StorageError(f"Supabase remove failed for {bucket}: {e}") from e
        logger.debug("Removed %d objects from %s", len(paths), bucket)
