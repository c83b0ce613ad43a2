"""FastAPI dependency injection for database sessions and services."""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from estate_feed.config import AppSettings, load_settings
from estate_feed.database.engine import get_session_factory
from estate_feed.services.listing_service import ListingService
from estate_feed.storage import ObjectStorage, create_storage


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session.

    Yields:
        Database session that is automatically closed after use.
    """
    session_factory = get_session_factory()
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def get_settings() -> AppSettings:
    """Dependency that provides the application settings."""
    return load_settings()


def get_storage(settings: Annotated[AppSettings, Depends(get_settings)]) -> ObjectStorage:
    """Dependency that provides the configured object storage."""
    return create_storage(settings)


def get_listing_service(
    session: Annotated[Session, Depends(get_db)],
    storage: Annotated[ObjectStorage, Depends(get_storage)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> ListingService:
    """Dependency that provides a ListingService instance.

    Args:
        session: Database session from get_db dependency.
        storage: Object storage from get_storage dependency.
        settings: Application settings.

    Returns:
        ListingService instance.
    """
    return ListingService(session, storage=storage, bucket=settings.storage.bucket)


# Type aliases for cleaner dependency injection
DbSession = Annotated[Session, Depends(get_db)]
SettingsDep = Annotated[AppSettings, Depends(get_settings)]
ListingServiceDep = Annotated[ListingService, Depends(get_listing_service)]
