"""Service layer for estate-feed business logic."""

from estate_feed.services.extraction_service import ExtractionService
from estate_feed.services.job_service import JobService, SyncAlreadyRunningError
from estate_feed.services.listing_service import ListingNotFoundError, ListingService
from estate_feed.services.media_service import MediaPipeline
from estate_feed.services.sync_service import (
    DeletionGuardError,
    SyncAccumulator,
    SyncError,
    SyncInterruptedError,
    SyncService,
)

__all__ = [
    "DeletionGuardError",
    "ExtractionService",
    "JobService",
    "ListingNotFoundError",
    "ListingService",
    "MediaPipeline",
    "SyncAccumulator",
    "SyncAlreadyRunningError",
    "SyncError",
    "SyncInterruptedError",
    "SyncService",
]
