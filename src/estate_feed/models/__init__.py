"""Data models for estate-feed."""

from estate_feed.models.pydantic_models import (
    ChannelPost,
    ChannelRef,
    ListingRead,
    ListingUpdate,
    SyncMode,
    SyncResult,
    SyncStatus,
)

__all__ = [
    "ChannelPost",
    "ChannelRef",
    "ListingRead",
    "ListingUpdate",
    "SyncMode",
    "SyncResult",
    "SyncStatus",
]
