"""Service layer for channel synchronization.

Three run modes share one message-processing routine:

- backfill: newest to oldest, stopping at the lookback cutoff
- incremental: only messages above the source watermark, oldest first
- deleted-check: verify stored listings still exist in the channel and
  remove the ones that do not, guarded against mass deletion
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from estate_feed.channel.base import ChannelClient
from estate_feed.config import SyncSettings
from estate_feed.database.repository import (
    ExclusionRepository,
    ListingRepository,
    MessageRepository,
    SourceRepository,
    build_permalink,
)
from estate_feed.models.db_models import Listing, Source
from estate_feed.models.pydantic_models import (
    ChannelPost,
    ChannelRef,
    SyncMode,
    SyncProgress,
    SyncResult,
)
from estate_feed.services.listing_service import ListingService
from estate_feed.services.media_service import DEFAULT_BUCKET, MediaPipeline
from estate_feed.storage.base import ObjectStorage

logger = logging.getLogger(__name__)

DELETED_IN_CHANNEL_REASON = "telegram_deleted"

ProgressCallback = Callable[[SyncProgress], None]


class SyncError(Exception):
    """Base exception for sync failures."""

    pass


class DeletionGuardError(SyncError):
    """Raised when deleted-check finds too many listings missing to trust."""

    def __init__(self, checked: int, missing: int, max_ratio: float) -> None:
        self.checked = checked
        self.missing = missing
        self.max_ratio = max_ratio
        super().__init__(
            f"Deleted-check aborted by safety guard: {missing}/{checked} listings missing "
            f"(limit {max_ratio:.0%}). Check channel access and settings."
        )


class SyncInterruptedError(SyncError):
    """Raised when channel iteration fails partway through a run."""

    def __init__(self, mode: SyncMode, processed: int, watermark: int | None) -> None:
        self.mode = mode
        self.processed = processed
        self.watermark = watermark
        super().__init__(
            f"{mode.value} sync interrupted after {processed} messages "
            f"(watermark {watermark})"
        )


@dataclass
class SyncAccumulator:
    """Running totals of a single sync run."""

    mode: SyncMode
    processed_messages: int = 0
    skipped_excluded: int = 0
    failed_messages: int = 0
    max_message_id: int = 0
    listing_ids: list[int] = field(default_factory=list)
    checked_listings: int = 0
    missing_candidates: int = 0
    deleted_listings: int = 0

    def observe(self, message_id: int) -> None:
        """Record a message id seen during iteration."""
        if message_id > self.max_message_id:
            self.max_message_id = message_id

    def touch(self, listing_id: int) -> None:
        """Record a created or updated listing once."""
        if listing_id not in self.listing_ids:
            self.listing_ids.append(listing_id)

    def progress(self, current_message_id: int | None = None) -> SyncProgress:
        return SyncProgress(
            mode=self.mode,
            processed_messages=self.processed_messages,
            listings_touched=len(self.listing_ids),
            current_message_id=current_message_id,
        )

    def to_result(self, last_message_id: int | None = None) -> SyncResult:
        return SyncResult(
            mode=self.mode,
            processed_messages=self.processed_messages,
            listings_touched=len(self.listing_ids),
            skipped_excluded=self.skipped_excluded,
            failed_messages=self.failed_messages,
            last_message_id=last_message_id,
            listing_ids=list(self.listing_ids),
            checked_listings=self.checked_listings,
            missing_candidates=self.missing_candidates,
            deleted_listings=self.deleted_listings,
        )


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SyncService:
    """Service for synchronizing one channel into the catalog.

    Runs are sequential: every channel, storage and catalog call is awaited
    in order. Callers are responsible for not running two syncs at once.
    """

    def __init__(
        self,
        session: Session,
        client: ChannelClient,
        storage: ObjectStorage,
        channel_handle: str,
        settings: SyncSettings | None = None,
        bucket: str = DEFAULT_BUCKET,
    ) -> None:
        """Initialize the service.

        Args:
            session: SQLAlchemy session instance.
            client: Started channel client.
            storage: Object storage for listing photos.
            channel_handle: Channel username without '@'.
            settings: Sync tuning. Uses defaults if not provided.
            bucket: Storage bucket for photos.
        """
        self._session = session
        self._client = client
        self._channel_handle = channel_handle
        self._settings = settings or SyncSettings()
        self._sources = SourceRepository(session)
        self._messages = MessageRepository(session)
        self._listings = ListingRepository(session)
        self._exclusions = ExclusionRepository(session)
        self._media = MediaPipeline(session, storage, client=client, bucket=bucket)
        self._listing_service = ListingService(session, storage=storage, bucket=bucket)

    async def run(
        self,
        mode: SyncMode,
        progress_callback: ProgressCallback | None = None,
    ) -> SyncResult:
        """Run a sync in the given mode.

        Args:
            mode: Sync mode.
            progress_callback: Optional callback for progress updates.

        Returns:
            SyncResult of the run.

        Raises:
            DeletionGuardError: If deleted-check trips the safety guard.
            SyncInterruptedError: If channel iteration fails mid-run.
        """
        if mode == SyncMode.BACKFILL:
            return await self.run_backfill(progress_callback)
        if mode == SyncMode.INCREMENTAL:
            return await self.run_incremental(progress_callback)
        return await self.run_deleted_check()

    async def ensure_source(self) -> tuple[Source, ChannelRef]:
        """Resolve the channel and upsert its Source row.

        Returns:
            Tuple of (Source, ChannelRef).
        """
        channel = await self._client.resolve_channel(self._channel_handle)
        source = self._sources.upsert_source(
            peer_id=channel.peer_id,
            title=channel.title,
            username=channel.username,
        )
        return source, channel

    async def run_backfill(self, progress_callback: ProgressCallback | None = None) -> SyncResult:
        """Ingest every post newer than the lookback cutoff.

        Iterates newest to oldest and stops at the first older post. The
        watermark is advanced to the highest id seen, never lowered. If
        iteration fails the watermark is left as it was.

        Args:
            progress_callback: Optional callback for progress updates.

        Returns:
            SyncResult of the run.

        Raises:
            SyncInterruptedError: If channel iteration fails.
        """
        source, channel = await self.ensure_source()
        cutoff = datetime.now(timezone.utc) - timedelta(days=self._settings.lookback_days)
        source_id = source.id
        previous_watermark = source.last_message_id
        acc = SyncAccumulator(mode=SyncMode.BACKFILL, max_message_id=previous_watermark or 0)

        logger.info("Backfilling posts since %s", cutoff.isoformat())

        try:
            async for post in self._client.iter_messages(channel):
                if _as_utc(post.posted_at) < cutoff:
                    logger.info("Reached lookback cutoff at message %d", post.message_id)
                    break

                await self.process_message(source, post, acc)
                acc.observe(post.message_id)
                if progress_callback:
                    progress_callback(acc.progress(post.message_id))
        except Exception as e:
            self._session.rollback()
            logger.exception("Error during backfill iteration")
            raise SyncInterruptedError(
                SyncMode.BACKFILL, acc.processed_messages, previous_watermark
            ) from e

        watermark = self._sources.advance_watermark(source_id, acc.max_message_id)
        logger.info(
            "Backfill processed %d messages, watermark %s", acc.processed_messages, watermark
        )
        return acc.to_result(last_message_id=watermark)

    async def run_incremental(
        self, progress_callback: ProgressCallback | None = None
    ) -> SyncResult:
        """Ingest posts above the watermark, oldest first.

        Posts arrive in ascending order, so every id up to the highest one
        seen has been processed. When iteration fails the watermark is moved
        to that id before the error is raised and the next run resumes
        right after it.

        Args:
            progress_callback: Optional callback for progress updates.

        Returns:
            SyncResult whose ``listing_ids`` are the touched listings.

        Raises:
            SyncInterruptedError: If channel iteration fails.
        """
        source, channel = await self.ensure_source()
        source_id = source.id
        last_id = source.last_message_id or 0
        acc = SyncAccumulator(mode=SyncMode.INCREMENTAL, max_message_id=last_id)

        logger.info("Fetching messages after id %d", last_id)

        try:
            async for post in self._client.iter_messages(
                channel, min_id=last_id or None, reverse=True
            ):
                if post.message_id <= last_id:
                    continue
                await self.process_message(source, post, acc)
                acc.observe(post.message_id)
                if progress_callback:
                    progress_callback(acc.progress(post.message_id))
        except Exception as e:
            self._session.rollback()
            logger.exception("Error during incremental sync")
            watermark = self._commit_watermark(source_id, last_id, acc.max_message_id)
            raise SyncInterruptedError(
                SyncMode.INCREMENTAL, acc.processed_messages, watermark
            ) from e

        watermark = self._commit_watermark(source_id, last_id, acc.max_message_id)
        logger.info("Processed %d new messages", acc.processed_messages)
        return acc.to_result(last_message_id=watermark)

    def _commit_watermark(self, source_id: int, previous: int, highest: int) -> int | None:
        if highest == previous:
            return previous or None
        watermark = self._sources.advance_watermark(source_id, highest)
        logger.info("Updated watermark to %s", watermark)
        return watermark

    async def run_deleted_check(self) -> SyncResult:
        """Remove listings whose representative post is gone from the channel.

        Message ids are checked in batches. A failed batch is logged, its
        listings are treated as present and they do not count as checked.
        When enough listings were checked and too large a share is missing,
        nothing is deleted.

        Returns:
            SyncResult with checked, missing and deleted counts.

        Raises:
            DeletionGuardError: If the missing ratio trips the safety guard.
        """
        source, channel = await self.ensure_source()
        acc = SyncAccumulator(mode=SyncMode.CHECK_DELETED)
        listings = self._listings.get_listings_by_source(source.id)

        if not listings:
            logger.info("No listings to check")
            return acc.to_result(last_message_id=source.last_message_id)

        logger.info("Checking %d listings against channel messages", len(listings))

        batch_size = self._settings.check_batch_size
        missing: list[Listing] = []
        for offset in range(0, len(listings), batch_size):
            batch = listings[offset : offset + batch_size]
            try:
                found = await self._client.fetch_messages_by_ids(
                    channel, [listing.message_id for listing in batch]
                )
            except Exception:
                logger.exception("Deleted-check batch failed at offset %d", offset)
                continue

            existing_ids = {post.message_id for post in found}
            acc.checked_listings += len(batch)
            missing.extend(listing for listing in batch if listing.message_id not in existing_ids)

        acc.missing_candidates = len(missing)
        logger.info("Potentially missing in channel: %d", len(missing))

        if self._guard_tripped(len(listings), acc.checked_listings, acc.missing_candidates):
            raise DeletionGuardError(
                checked=acc.checked_listings,
                missing=acc.missing_candidates,
                max_ratio=self._settings.max_missing_ratio,
            )

        for listing in missing:
            listing_id = listing.id
            try:
                self._listing_service.exclude_and_delete(listing, reason=DELETED_IN_CHANNEL_REASON)
                acc.deleted_listings += 1
            except Exception:
                self._session.rollback()
                logger.exception("Failed to exclude/delete listing %d", listing_id)

        logger.info("Deleted %d listings removed from the channel", acc.deleted_listings)
        return acc.to_result(last_message_id=source.last_message_id)

    def _guard_tripped(self, catalog_size: int, checked: int, missing: int) -> bool:
        if catalog_size < self._settings.min_listings_for_guard or checked == 0:
            return False
        return missing / checked > self._settings.max_missing_ratio

    async def process_message(
        self,
        source: Source,
        post: ChannelPost,
        acc: SyncAccumulator,
    ) -> int | None:
        """Ingest one post into the catalog.

        Skips tombstoned listing keys, upserts the message and its listing,
        then stores the photo if the post has one. Failures are logged and
        count as no listing.

        Args:
            source: Owning source.
            post: Channel post.
            acc: Run accumulator to update.

        Returns:
            ID of the touched listing, or None.
        """
        acc.processed_messages += 1
        source_id = source.id
        username = source.username

        try:
            listing_key = post.listing_key
            if self._exclusions.is_excluded(source_id, listing_key):
                logger.debug("Skipping excluded listing %d", listing_key)
                acc.skipped_excluded += 1
                return None

            permalink = build_permalink(username, post.message_id)
            message_row = self._messages.upsert_message(source_id, post, permalink)
            listing, _ = self._listings.upsert_listing(source_id, post, permalink)
            listing_id = listing.id

            await self._media.process_media(source, post, message_row, listing)
        except Exception:
            self._session.rollback()
            logger.exception("Error processing message %d", post.message_id)
            acc.failed_messages += 1
            return None

        acc.touch(listing_id)
        return listing_id
