"""Repository layer for database operations."""

import functools
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

from sqlalchemy import asc, desc, nulls_last, or_
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query, Session
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from typing_extensions import ParamSpec

from estate_feed.models.db_models import (
    ChannelMessage,
    ExcludedListing,
    Listing,
    ListingImage,
    Media,
    Source,
    SyncJob,
)
from estate_feed.models.pydantic_models import ChannelPost, SyncMode, SyncStatus

P = ParamSpec("P")
R = TypeVar("R")

# Retry configuration for database operations
DB_RETRY_MAX_ATTEMPTS = 5
DB_RETRY_WAIT_MIN = 1  # seconds
DB_RETRY_WAIT_MAX = 8  # seconds
DB_RETRY_WAIT_MULTIPLIER = 2


def with_db_retry(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator to retry database operations on SQLite lock errors.

    Retries on sqlalchemy.exc.OperationalError using exponential backoff.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        for attempt in Retrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(DB_RETRY_MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=DB_RETRY_WAIT_MULTIPLIER,
                min=DB_RETRY_WAIT_MIN,
                max=DB_RETRY_WAIT_MAX,
            ),
            reraise=True,
        ):
            with attempt:
                return func(*args, **kwargs)
        raise RuntimeError("Retry logic failed unexpectedly")

    return wrapper


def build_permalink(username: str | None, message_id: int) -> str | None:
    """Public t.me link for a channel post, if the channel has a username."""
    if not username:
        return None
    return f"https://t.me/{username}/{message_id}"


class SourceRepository:
    """Repository for tracked channels and their watermarks."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session

    def get_source(self, source_id: int) -> Source | None:
        return self._session.query(Source).filter(Source.id == source_id).first()

    def get_source_by_peer_id(self, peer_id: int) -> Source | None:
        return self._session.query(Source).filter(Source.telegram_peer_id == peer_id).first()

    @with_db_retry
    def upsert_source(
        self,
        peer_id: int,
        title: str | None,
        username: str | None,
    ) -> Source:
        """Create or update a source keyed by its peer id.

        The watermark of an existing source is never touched here.

        Args:
            peer_id: Stable external peer identifier.
            title: Channel display title.
            username: Channel handle without the leading '@'.

        Returns:
            The stored Source.
        """
        source = self.get_source_by_peer_id(peer_id)
        if source is None:
            source = Source(telegram_peer_id=peer_id, title=title, username=username)
            self._session.add(source)
        else:
            source.title = title
            source.username = username

        self._session.commit()
        self._session.refresh(source)
        return source

    @with_db_retry
    def advance_watermark(self, source_id: int, observed_max_id: int) -> int | None:
        """Move the watermark forward to observed_max_id, never backwards.

        Args:
            source_id: Source ID.
            observed_max_id: Highest message id seen during a run.

        Returns:
            The watermark after the update, or None if the source is missing.
        """
        source = self.get_source(source_id)
        if source is None:
            return None

        current = source.last_message_id or 0
        if observed_max_id > current:
            source.last_message_id = observed_max_id
            self._session.commit()
            self._session.refresh(source)

        return source.last_message_id


class MessageRepository:
    """Repository for raw channel messages."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session

    def get_message(self, source_id: int, message_id: int) -> ChannelMessage | None:
        return (
            self._session.query(ChannelMessage)
            .filter(
                ChannelMessage.source_id == source_id,
                ChannelMessage.message_id == message_id,
            )
            .first()
        )

    @with_db_retry
    def upsert_message(
        self,
        source_id: int,
        post: ChannelPost,
        permalink: str | None,
    ) -> ChannelMessage:
        """Create or replace a message row keyed by (source, message id).

        Re-ingesting a known message overwrites its fields, which is how
        edits in the channel reach the catalog.

        Args:
            source_id: Source ID.
            post: Channel post.
            permalink: Public link to the post.

        Returns:
            The stored ChannelMessage.
        """
        row = self.get_message(source_id, post.message_id)
        if row is None:
            row = ChannelMessage(source_id=source_id, message_id=post.message_id)
            self._session.add(row)

        row.grouped_id = post.grouped_id
        row.posted_at = post.posted_at
        row.text_raw = post.text or None
        row.permalink = permalink
        row.has_media = post.has_media
        row.media_count = 1 if post.has_media else 0

        self._session.commit()
        self._session.refresh(row)
        return row

    def get_texts_for_listing_key(
        self, source_id: int, listing_key: int, limit: int = 10
    ) -> list[str]:
        """Get non-empty texts of messages sharing a listing key.

        Args:
            source_id: Source ID.
            listing_key: Group id or single message id.
            limit: Maximum rows to read.

        Returns:
            List of raw texts.
        """
        rows = (
            self._session.query(ChannelMessage.text_raw)
            .filter(
                ChannelMessage.source_id == source_id,
                or_(
                    ChannelMessage.grouped_id == listing_key,
                    ChannelMessage.message_id == listing_key,
                ),
                ChannelMessage.text_raw.is_not(None),
            )
            .limit(limit)
            .all()
        )
        return [text for (text,) in rows if text and text.strip()]


class ListingRepository:
    """Repository for Listing CRUD operations keyed by (source, listing key)."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session

    # ========== READ ==========

    def get_listing_by_id(self, listing_id: int) -> Listing | None:
        """Get a listing by its ID.

        Args:
            listing_id: Listing ID.

        Returns:
            Listing if found, None otherwise.
        """
        return self._session.query(Listing).filter(Listing.id == listing_id).first()

    def get_listing_by_key(self, source_id: int, listing_key: int) -> Listing | None:
        """Get a listing by its natural key.

        Args:
            source_id: Source ID.
            listing_key: Group id or single message id.

        Returns:
            Listing if found, None otherwise.
        """
        return (
            self._session.query(Listing)
            .filter(Listing.source_id == source_id, Listing.listing_key == listing_key)
            .first()
        )

    def get_listings_by_source(self, source_id: int) -> list[Listing]:
        """Get every listing of a source, oldest message first."""
        return (
            self._session.query(Listing)
            .filter(Listing.source_id == source_id)
            .order_by(Listing.message_id)
            .all()
        )

    def _apply_listing_filters(
        self,
        query: Query[Listing],
        source_id: int | None = None,
        property_type: str | None = None,
        price_min: float | None = None,
        price_max: float | None = None,
        area_min: float | None = None,
        area_max: float | None = None,
        rooms: str | None = None,
        floor_min: int | None = None,
        floor_max: int | None = None,
        condition: str | None = None,
        district: str | None = None,
        street: str | None = None,
        search: str | None = None,
    ) -> Query[Listing]:
        """Apply common filters to a listing query.

        Args:
            query: SQLAlchemy query to filter.
            source_id: Filter by source.
            property_type: Filter by property type.
            price_min: Minimum USD price.
            price_max: Maximum USD price.
            area_min: Minimum area in m².
            area_max: Maximum area in m².
            rooms: Exact rooms text ("2+1"), or "studio".
            floor_min: Lowest floor.
            floor_max: Highest floor.
            condition: Normalized condition code.
            district: Substring of the district.
            street: Substring of the street.
            search: Text search in title and description.

        Returns:
            Filtered query.
        """
        if source_id is not None:
            query = query.filter(Listing.source_id == source_id)

        if property_type is not None:
            query = query.filter(Listing.property_type == property_type)

        if price_min is not None:
            query = query.filter(Listing.price_usd >= price_min)

        if price_max is not None:
            query = query.filter(Listing.price_usd <= price_max)

        if area_min is not None:
            query = query.filter(Listing.area_m2 >= area_min)

        if area_max is not None:
            query = query.filter(Listing.area_m2 <= area_max)

        if rooms is not None:
            if rooms.lower() == "studio":
                query = query.filter(Listing.rooms_text.ilike("%studio%"))
            else:
                query = query.filter(Listing.rooms_text == rooms)

        if floor_min is not None:
            query = query.filter(Listing.floor >= floor_min)

        if floor_max is not None:
            query = query.filter(Listing.floor <= floor_max)

        if condition is not None:
            query = query.filter(Listing.condition_norm == condition)

        if district is not None:
            query = query.filter(Listing.district.ilike(f"%{district}%"))

        if street is not None:
            query = query.filter(Listing.street.ilike(f"%{street}%"))

        if search is not None:
            search_pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Listing.title.ilike(search_pattern),
                    Listing.description_raw.ilike(search_pattern),
                )
            )

        return query

    def get_listings(
        self,
        source_id: int | None = None,
        property_type: str | None = None,
        price_min: float | None = None,
        price_max: float | None = None,
        area_min: float | None = None,
        area_max: float | None = None,
        rooms: str | None = None,
        floor_min: int | None = None,
        floor_max: int | None = None,
        condition: str | None = None,
        district: str | None = None,
        street: str | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        sort_order: str = "desc",
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Listing]:
        """Get listings with optional filters.

        Args:
            source_id: Filter by source.
            property_type: Filter by property type.
            price_min: Minimum USD price.
            price_max: Maximum USD price.
            area_min: Minimum area in m².
            area_max: Maximum area in m².
            rooms: Exact rooms text ("2+1"), or "studio".
            floor_min: Lowest floor.
            floor_max: Highest floor.
            condition: Normalized condition code.
            district: Substring of the district.
            street: Substring of the street.
            search: Text search in title and description.
            sort_by: Field to sort by (posted, price, area, price_per_m2).
            sort_order: Sort direction (asc, desc). Default: desc.
            limit: Maximum number of results.
            offset: Number of results to skip.

        Returns:
            List of matching Listing objects.
        """
        query = self._apply_listing_filters(
            self._session.query(Listing),
            source_id=source_id,
            property_type=property_type,
            price_min=price_min,
            price_max=price_max,
            area_min=area_min,
            area_max=area_max,
            rooms=rooms,
            floor_min=floor_min,
            floor_max=floor_max,
            condition=condition,
            district=district,
            street=street,
            search=search,
        )

        # Sorting, listings without the sorted value go last
        sort_columns = {
            "posted": Listing.posted_at,
            "price": Listing.price_usd,
            "area": Listing.area_m2,
            "price_per_m2": Listing.price_usd / Listing.area_m2,
        }
        if sort_by and sort_by in sort_columns:
            col = sort_columns[sort_by]
            ordered = desc(col) if sort_order == "desc" else asc(col)
            query = query.order_by(nulls_last(ordered), desc(Listing.id))
        else:
            # Default: newest post first
            query = query.order_by(desc(Listing.posted_at), desc(Listing.id))

        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)

        return query.all()

    def count_listings(
        self,
        source_id: int | None = None,
        property_type: str | None = None,
        price_min: float | None = None,
        price_max: float | None = None,
        area_min: float | None = None,
        area_max: float | None = None,
        rooms: str | None = None,
        floor_min: int | None = None,
        floor_max: int | None = None,
        condition: str | None = None,
        district: str | None = None,
        street: str | None = None,
        search: str | None = None,
    ) -> int:
        """Count listings matching the same filters as get_listings."""
        query = self._apply_listing_filters(
            self._session.query(Listing),
            source_id=source_id,
            property_type=property_type,
            price_min=price_min,
            price_max=price_max,
            area_min=area_min,
            area_max=area_max,
            rooms=rooms,
            floor_min=floor_min,
            floor_max=floor_max,
            condition=condition,
            district=district,
            street=street,
            search=search,
        )
        return query.count()

    def get_listings_batch(
        self,
        offset: int,
        limit: int,
        listing_ids: list[int] | None = None,
    ) -> list[Listing]:
        """Get a stable page of listings ordered by id.

        Args:
            offset: Number of rows to skip.
            limit: Page size.
            listing_ids: Restrict the scan to these ids.

        Returns:
            List of Listing objects.
        """
        query = self._session.query(Listing)
        if listing_ids is not None:
            query = query.filter(Listing.id.in_(listing_ids))
        return query.order_by(Listing.id).offset(offset).limit(limit).all()

    def get_listings_missing_description(
        self, listing_ids: list[int] | None = None
    ) -> list[Listing]:
        """Get listings whose description is null or empty."""
        query = self._session.query(Listing).filter(
            or_(Listing.description_raw.is_(None), Listing.description_raw == "")
        )
        if listing_ids is not None:
            query = query.filter(Listing.id.in_(listing_ids))
        return query.all()

    # ========== UPSERT ==========

    @with_db_retry
    def upsert_listing(
        self,
        source_id: int,
        post: ChannelPost,
        permalink: str | None,
    ) -> tuple[Listing, bool]:
        """Create or update a listing keyed by (source, listing key).

        A message carrying text becomes the representative message of its
        group; photo-only siblings never blank an existing description.

        Args:
            source_id: Source ID.
            post: Channel post being ingested.
            permalink: Public link to the post.

        Returns:
            Tuple of (Listing, created) where created is True if new.
        """
        existing = self.get_listing_by_key(source_id, post.listing_key)
        text = post.text or None

        if existing is None:
            listing = Listing(
                source_id=source_id,
                listing_key=post.listing_key,
                message_id=post.message_id,
                posted_at=post.posted_at,
                title=None,
                description_raw=text,
                permalink=permalink,
            )
            self._session.add(listing)
            self._session.commit()
            self._session.refresh(listing)
            return listing, True

        if text or not existing.description_raw:
            existing.message_id = post.message_id
            existing.permalink = permalink or existing.permalink
            existing.posted_at = post.posted_at or existing.posted_at
        existing.description_raw = text or existing.description_raw

        self._session.commit()
        self._session.refresh(existing)
        return existing, False

    # ========== UPDATE ==========

    @with_db_retry
    def update_listing(self, listing_id: int, **kwargs: Any) -> Listing | None:
        """Update a listing's attributes.

        Args:
            listing_id: Listing ID to update.
            **kwargs: Attributes to update.

        Returns:
            Updated Listing if found, None otherwise.
        """
        listing = self.get_listing_by_id(listing_id)
        if listing is None:
            return None

        for key, value in kwargs.items():
            if hasattr(listing, key):
                setattr(listing, key, value)

        self._session.commit()
        self._session.refresh(listing)

        return listing

    # ========== DELETE ==========

    @with_db_retry
    def delete_listing(self, listing_id: int) -> bool:
        """Delete a listing by ID.

        Args:
            listing_id: Listing ID to delete.

        Returns:
            True if deleted, False if not found.
        """
        listing = self.get_listing_by_id(listing_id)
        if listing is None:
            return False

        self._session.delete(listing)
        self._session.commit()
        return True


class ExclusionRepository:
    """Repository for listing tombstones."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session

    def is_excluded(self, source_id: int, listing_key: int) -> bool:
        """Check whether a listing key has been tombstoned."""
        return (
            self._session.query(ExcludedListing.id)
            .filter(
                ExcludedListing.source_id == source_id,
                ExcludedListing.listing_key == listing_key,
            )
            .first()
            is not None
        )

    def get_exclusions(self, source_id: int) -> list[ExcludedListing]:
        return (
            self._session.query(ExcludedListing)
            .filter(ExcludedListing.source_id == source_id)
            .order_by(desc(ExcludedListing.created_at))
            .all()
        )

    @with_db_retry
    def exclude(
        self,
        source_id: int,
        listing_key: int,
        message_id: int | None = None,
        permalink: str | None = None,
        reason: str | None = None,
        deleted_by: str | None = None,
    ) -> ExcludedListing:
        """Write (or refresh) a tombstone for a listing key.

        Args:
            source_id: Source ID.
            listing_key: Listing key to block.
            message_id: Representative message id at deletion time.
            permalink: Link to the removed post.
            reason: Why the listing was removed.
            deleted_by: Operator identifier, None for automatic removals.

        Returns:
            The stored ExcludedListing.
        """
        row = (
            self._session.query(ExcludedListing)
            .filter(
                ExcludedListing.source_id == source_id,
                ExcludedListing.listing_key == listing_key,
            )
            .first()
        )
        if row is None:
            row = ExcludedListing(source_id=source_id, listing_key=listing_key)
            self._session.add(row)

        row.message_id = message_id
        row.permalink = permalink
        row.reason = reason
        row.deleted_by = deleted_by

        self._session.commit()
        self._session.refresh(row)
        return row


class MediaRepository:
    """Repository for downloaded media and listing image associations."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session

    @with_db_retry
    def upsert_media(
        self,
        message_row_id: int,
        storage_bucket: str,
        storage_path: str,
        cdn_url: str | None,
        position: int = 0,
        media_type: str = "photo",
    ) -> Media:
        """Create or update a media row keyed by (message row, storage path).

        Args:
            message_row_id: Owning ChannelMessage row id.
            storage_bucket: Object storage bucket.
            storage_path: Object path inside the bucket.
            cdn_url: Public URL of the object.
            position: Ordinal within the message.
            media_type: Attachment type.

        Returns:
            The stored Media row.
        """
        media = (
            self._session.query(Media)
            .filter(Media.message_row_id == message_row_id, Media.storage_path == storage_path)
            .first()
        )
        if media is None:
            media = Media(message_row_id=message_row_id, storage_path=storage_path)
            self._session.add(media)

        media.type = media_type
        media.storage_bucket = storage_bucket
        media.cdn_url = cdn_url
        media.position = position

        self._session.commit()
        self._session.refresh(media)
        return media

    @with_db_retry
    def link_to_listing(
        self, listing_id: int, media_id: int, url: str | None, position: int
    ) -> ListingImage:
        """Associate a media row with a listing at a position (upsert)."""
        image = (
            self._session.query(ListingImage)
            .filter(ListingImage.listing_id == listing_id, ListingImage.position == position)
            .first()
        )
        if image is None:
            image = ListingImage(listing_id=listing_id, position=position)
            self._session.add(image)

        image.telegram_media_id = media_id
        image.url = url

        self._session.commit()
        self._session.refresh(image)
        return image

    def get_media_for_listing(self, listing_id: int) -> list[Media]:
        """Get media rows referenced by a listing's images."""
        media_ids = (
            self._session.query(ListingImage.telegram_media_id)
            .filter(
                ListingImage.listing_id == listing_id,
                ListingImage.telegram_media_id.is_not(None),
            )
            .scalar_subquery()
        )
        return self._session.query(Media).filter(Media.id.in_(media_ids)).all()

    def get_listing_images(self, listing_id: int) -> list[ListingImage]:
        return (
            self._session.query(ListingImage)
            .filter(ListingImage.listing_id == listing_id)
            .order_by(ListingImage.position)
            .all()
        )

    @with_db_retry
    def delete_listing_images(self, listing_id: int) -> int:
        """Delete every image association of a listing.

        Returns:
            Number of deleted rows.
        """
        deleted = (
            self._session.query(ListingImage)
            .filter(ListingImage.listing_id == listing_id)
            .delete(synchronize_session=False)
        )
        self._session.commit()
        return deleted

    @with_db_retry
    def delete_media(self, media_ids: list[int]) -> int:
        """Delete media rows by id.

        Returns:
            Number of deleted rows.
        """
        if not media_ids:
            return 0
        deleted = (
            self._session.query(Media)
            .filter(Media.id.in_(media_ids))
            .delete(synchronize_session=False)
        )
        self._session.commit()
        return deleted


class SyncJobRepository:
    """Repository for SyncJob CRUD operations."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session

    @with_db_retry
    def create_job(self, mode: SyncMode) -> SyncJob:
        """Create a new pending sync job.

        Args:
            mode: Sync mode to run.

        Returns:
            Created SyncJob.
        """
        job = SyncJob(mode=mode)
        self._session.add(job)
        self._session.commit()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: int) -> SyncJob | None:
        return self._session.query(SyncJob).filter(SyncJob.id == job_id).first()

    def get_recent_jobs(self, limit: int = 20) -> list[SyncJob]:
        """Get recent jobs, newest first.

        Args:
            limit: Maximum number of jobs to return.

        Returns:
            List of SyncJob objects.
        """
        return (
            self._session.query(SyncJob)
            .order_by(desc(SyncJob.created_at), desc(SyncJob.id))
            .limit(limit)
            .all()
        )

    def get_active_job(self) -> SyncJob | None:
        """Get a pending or running job, if any."""
        return (
            self._session.query(SyncJob)
            .filter(SyncJob.status.in_([SyncStatus.PENDING, SyncStatus.RUNNING]))
            .order_by(desc(SyncJob.id))
            .first()
        )

    def get_latest_job(self) -> SyncJob | None:
        return self._session.query(SyncJob).order_by(desc(SyncJob.id)).first()

    @with_db_retry
    def update_status(self, job_id: int, status: SyncStatus) -> SyncJob | None:
        """Update job status.

        Args:
            job_id: Job ID.
            status: New status.

        Returns:
            Updated SyncJob if found, None otherwise.
        """
        job = self.get_job(job_id)
        if job is None:
            return None

        job.status = status
        if status == SyncStatus.RUNNING and job.started_at is None:
            job.started_at = datetime.now(timezone.utc)

        self._session.commit()
        self._session.refresh(job)
        return job

    @with_db_retry
    def update_progress(
        self,
        job_id: int,
        processed_messages: int | None = None,
        listings_touched: int | None = None,
    ) -> SyncJob | None:
        """Update job progress counters.

        Args:
            job_id: Job ID.
            processed_messages: Messages processed so far.
            listings_touched: Listings created or updated so far.

        Returns:
            Updated SyncJob if found, None otherwise.
        """
        job = self.get_job(job_id)
        if job is None:
            return None

        if processed_messages is not None:
            job.processed_messages = processed_messages
        if listings_touched is not None:
            job.listings_touched = listings_touched

        self._session.commit()
        self._session.refresh(job)
        return job

    @with_db_retry
    def complete_job(
        self,
        job_id: int,
        processed_messages: int = 0,
        listings_touched: int = 0,
        deleted_listings: int = 0,
    ) -> SyncJob | None:
        """Mark job as completed.

        Args:
            job_id: Job ID.
            processed_messages: Messages processed during the run.
            listings_touched: Listings created or updated.
            deleted_listings: Listings removed by deletion reconciliation.

        Returns:
            Updated SyncJob if found, None otherwise.
        """
        job = self.get_job(job_id)
        if job is None:
            return None

        job.status = SyncStatus.COMPLETED
        job.completed_at = datetime.now(timezone.utc)
        job.processed_messages = processed_messages
        job.listings_touched = listings_touched
        job.deleted_listings = deleted_listings

        self._session.commit()
        self._session.refresh(job)
        return job

    @with_db_retry
    def fail_job(self, job_id: int, error_message: str) -> SyncJob | None:
        """Mark job as failed.

        Args:
            job_id: Job ID.
            error_message: Error description.

        Returns:
            Updated SyncJob if found, None otherwise.
        """
        job = self.get_job(job_id)
        if job is None:
            return None

        job.status = SyncStatus.FAILED
        job.completed_at = datetime.now(timezone.utc)
        job.error_message = error_message

        self._session.commit()
        self._session.refresh(job)
        return job

    @with_db_retry
    def fail_stale_jobs(self, error_message: str = "Interrupted by restart") -> int:
        """Mark pending/running jobs left behind by a dead process as failed.

        Returns:
            Number of jobs marked failed.
        """
        jobs = (
            self._session.query(SyncJob)
            .filter(SyncJob.status.in_([SyncStatus.PENDING, SyncStatus.RUNNING]))
            .all()
        )
        now = datetime.now(timezone.utc)
        for job in jobs:
            job.status = SyncStatus.FAILED
            job.completed_at = now
            job.error_message = error_message
        self._session.commit()
        return len(jobs)

    @with_db_retry
    def cleanup_old_jobs(self, days: int = 30) -> int:
        """Delete completed/failed jobs older than specified days.

        Args:
            days: Delete jobs older than this many days.

        Returns:
            Number of deleted jobs.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        deleted = (
            self._session.query(SyncJob)
            .filter(
                SyncJob.created_at < cutoff,
                SyncJob.status.in_([SyncStatus.COMPLETED, SyncStatus.FAILED]),
            )
            .delete(synchronize_session=False)
        )
        self._session.commit()
        return deleted
