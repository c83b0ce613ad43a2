"""Database module."""

from estate_feed.database.engine import get_engine, get_session, init_db
from estate_feed.database.repository import (
    ExclusionRepository,
    ListingRepository,
    MediaRepository,
    MessageRepository,
    SourceRepository,
    SyncJobRepository,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "ExclusionRepository",
    "ListingRepository",
    "MediaRepository",
    "MessageRepository",
    "SourceRepository",
    "SyncJobRepository",
]
