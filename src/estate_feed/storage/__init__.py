"""Object storage backends."""

from estate_feed.config import AppSettings, ConfigError, load_supabase_credentials
from estate_feed.storage.base import ObjectStorage, StorageError
from estate_feed.storage.local import DEFAULT_MEDIA_DIR, LocalObjectStorage


def create_storage(settings: AppSettings) -> ObjectStorage:
    """Build the configured storage backend.

    Args:
        settings: Application settings.

    Returns:
        ObjectStorage implementation.

    Raises:
        ConfigError: If the backend is unknown or its credentials are missing.
    """
    backend = settings.storage.backend.lower()
    if backend == "local":
        return LocalObjectStorage(
            root=settings.storage.root,
            public_base_url=settings.storage.public_base_url,
        )
    if backend == "supabase":
        from estate_feed.storage.supabase_storage import (
            SupabaseObjectStorage,
            create_supabase_client,
        )

        return SupabaseObjectStorage(create_supabase_client(load_supabase_credentials()))
    raise ConfigError(f"Unknown storage backend: {settings.storage.backend}")


__all__ = [
    "DEFAULT_MEDIA_DIR",
    "LocalObjectStorage",
    "ObjectStorage",
    "StorageError",
    "create_storage",
]
