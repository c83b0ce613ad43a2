"""Service layer for listing operations."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from estate_feed.database.repository import ExclusionRepository, ListingRepository
from estate_feed.models.db_models import Listing
from estate_feed.models.pydantic_models import Condition, ListingRead, ListingUpdate, PropertyType
from estate_feed.services.media_service import DEFAULT_BUCKET, MediaPipeline
from estate_feed.storage.base import ObjectStorage

logger = logging.getLogger(__name__)

MANUAL_DELETE_REASON = "manual"


class ListingServiceError(Exception):
    """Base exception for listing service errors."""

    pass


class ListingNotFoundError(ListingServiceError):
    """Raised when listing doesn't exist."""

    pass


class ListingService:
    """Service for listing operations.

    Provides a clean interface for listing reads, field edits and
    tombstoning deletes, returning Pydantic models instead of ORM objects.
    """

    def __init__(
        self,
        session: Session,
        storage: ObjectStorage | None = None,
        bucket: str = DEFAULT_BUCKET,
    ) -> None:
        """Initialize with database session.

        Args:
            session: SQLAlchemy session instance.
            storage: Object storage holding listing photos. Required for deletes.
            bucket: Default storage bucket.
        """
        self._session = session
        self._storage = storage
        self._bucket = bucket
        self._repo = ListingRepository(session)
        self._exclusions = ExclusionRepository(session)

    @staticmethod
    def to_listing_read(listing: Listing) -> ListingRead:
        """Convert ORM model to Pydantic model."""
        return ListingRead.model_validate(listing)

    def get_listings(
        self,
        source_id: int | None = None,
        property_type: PropertyType | None = None,
        price_min: float | None = None,
        price_max: float | None = None,
        area_min: float | None = None,
        area_max: float | None = None,
        rooms: str | None = None,
        floor_min: int | None = None,
        floor_max: int | None = None,
        condition: Condition | None = None,
        district: str | None = None,
        street: str | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        sort_order: str = "desc",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ListingRead], int]:
        """Get paginated listings with filters.

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
            condition: Normalized condition.
            district: Substring of the district.
            street: Substring of the street.
            search: Text search in title and description.
            sort_by: Field to sort by (posted, price, area, price_per_m2).
            sort_order: Sort direction (asc, desc). Default: desc.
            limit: Maximum results to return.
            offset: Number of results to skip.

        Returns:
            Tuple of (list of ListingRead, total count).
        """
        filters: dict[str, Any] = {
            "source_id": source_id,
            "property_type": property_type.value if property_type else None,
            "price_min": price_min,
            "price_max": price_max,
            "area_min": area_min,
            "area_max": area_max,
            "rooms": rooms,
            "floor_min": floor_min,
            "floor_max": floor_max,
            "condition": condition.value if condition else None,
            "district": district,
            "street": street,
            "search": search,
        }
        listings = self._repo.get_listings(
            **filters,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        )
        total = self._repo.count_listings(**filters)
        return [self.to_listing_read(listing) for listing in listings], total

    def get_listing(self, listing_id: int) -> ListingRead | None:
        """Get a single listing by ID.

        Args:
            listing_id: Listing ID.

        Returns:
            ListingRead if found, None otherwise.
        """
        listing = self._repo.get_listing_by_id(listing_id)
        if listing is None:
            return None
        return self.to_listing_read(listing)

    def update_listing(self, listing_id: int, update: ListingUpdate) -> ListingRead:
        """Apply a partial update of typed fields.

        Setting ``price_value`` records the price as USD and mirrors it into
        ``price_usd``; clearing it clears both. Clearing ``property_type``
        resets it to apartment.

        Args:
            listing_id: Listing ID.
            update: Fields to change. Unset fields are left alone.

        Returns:
            Updated ListingRead.

        Raises:
            ListingNotFoundError: If the listing doesn't exist.
        """
        changes: dict[str, Any] = update.model_dump(exclude_unset=True, mode="json")

        if "price_value" in changes:
            price = changes["price_value"]
            changes["price_currency"] = "USD" if price is not None else None
            changes["price_usd"] = price

        if "property_type" in changes and changes["property_type"] is None:
            changes["property_type"] = PropertyType.APARTMENT.value

        listing = self._repo.update_listing(listing_id, **changes)
        if listing is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")

        logger.info("Updated listing %d: %s", listing_id, ", ".join(sorted(changes)))
        return self.to_listing_read(listing)

    def exclude_and_delete(
        self,
        listing: Listing,
        reason: str,
        deleted_by: str | None = None,
    ) -> None:
        """Tombstone a listing, clean up its media and delete it.

        The tombstone is written first so the listing cannot be re-created
        even if a later step fails. Media cleanup failures are logged.

        Args:
            listing: Listing to remove.
            reason: Why the listing is removed.
            deleted_by: Operator identifier, None for automatic removals.
        """
        if self._storage is None:
            raise ListingServiceError("Object storage is required to delete listings")

        listing_id = listing.id
        self._exclusions.exclude(
            source_id=listing.source_id,
            listing_key=listing.listing_key,
            message_id=listing.message_id,
            permalink=listing.permalink,
            reason=reason,
            deleted_by=deleted_by,
        )

        try:
            MediaPipeline(self._session, self._storage, bucket=self._bucket).cleanup_media(
                listing_id
            )
        except Exception:
            self._session.rollback()
            logger.exception("Failed to clean up media for listing %d", listing_id)

        self._repo.delete_listing(listing_id)
        logger.info("Removed listing %d (%s)", listing_id, reason)

    def delete_listing(
        self,
        listing_id: int,
        reason: str | None = None,
        deleted_by: str | None = None,
    ) -> None:
        """Delete a listing and block it from being ingested again.

        Args:
            listing_id: Listing ID to delete.
            reason: Why the listing is removed. Defaults to "manual".
            deleted_by: Operator identifier.

        Raises:
            ListingNotFoundError: If the listing doesn't exist.
        """
        listing = self._repo.get_listing_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")

        self.exclude_and_delete(listing, reason=reason or MANUAL_DELETE_REASON, deleted_by=deleted_by)
