"""Service layer for field extraction over stored listings."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from estate_feed.config import ExtractionSettings
from estate_feed.database.repository import ListingRepository, MessageRepository
from estate_feed.extraction.fields import (
    classify_property_type,
    extract_area,
    extract_condition,
    extract_floor,
    extract_rooms,
    pick_address_line,
    pick_building_name,
)
from estate_feed.extraction.normalizer import split_lines
from estate_feed.extraction.price import extract_price
from estate_feed.models.db_models import Listing
from estate_feed.models.pydantic_models import ExtractionResult, PriceTier

logger = logging.getLogger(__name__)


class ExtractionService:
    """Fills typed listing fields from description text.

    Property type is recomputed on every pass. Price may be replaced by a
    better reading; every other field is only written while it is empty.
    """

    def __init__(self, session: Session, settings: ExtractionSettings | None = None) -> None:
        """Initialize with database session.

        Args:
            session: SQLAlchemy session instance.
            settings: Extraction tuning. Uses defaults if not provided.
        """
        self._session = session
        self._settings = settings or ExtractionSettings()
        self._listings = ListingRepository(session)
        self._messages = MessageRepository(session)

    def run_extraction(self, listing_ids: list[int] | None = None) -> ExtractionResult:
        """Backfill descriptions, then extract fields batch by batch.

        Args:
            listing_ids: Restrict the pass to these listings. None means all
                listings; an empty list means none.

        Returns:
            ExtractionResult with counts.
        """
        result = ExtractionResult()
        if listing_ids is not None and not listing_ids:
            return result

        result.descriptions_filled = self.fill_missing_descriptions(listing_ids)

        batch_size = self._settings.batch_size
        offset = 0
        while True:
            batch = self._listings.get_listings_batch(offset, batch_size, listing_ids)
            if not batch:
                break

            logger.info("Processing listings %d-%d", offset + 1, offset + len(batch))
            for listing in batch:
                if not (listing.description_raw or "").strip():
                    result.skipped_empty += 1
                    continue

                updates = self.compute_updates(listing)
                if updates:
                    self._listings.update_listing(listing.id, **updates)
                    result.updated += 1

            result.processed += len(batch)
            if len(batch) < batch_size:
                break
            offset += batch_size

        logger.info(
            "Extraction complete: %d processed, %d updated", result.processed, result.updated
        )
        return result

    def fill_missing_descriptions(self, listing_ids: list[int] | None = None) -> int:
        """Give description-less listings the longest text of their messages.

        Args:
            listing_ids: Restrict to these listings. None means all.

        Returns:
            Number of listings updated.
        """
        listings = self._listings.get_listings_missing_description(listing_ids)
        if not listings:
            return 0

        logger.info("Filling missing descriptions for %d listings", len(listings))
        updated = 0
        for listing in listings:
            texts = self._messages.get_texts_for_listing_key(listing.source_id, listing.listing_key)
            if not texts:
                continue
            self._listings.update_listing(listing.id, description_raw=max(texts, key=len))
            updated += 1

        logger.info("Description backfill done, updated %d listings", updated)
        return updated

    def compute_updates(self, listing: Listing) -> dict[str, Any]:
        """Work out which fields to change for one listing.

        Args:
            listing: Listing with non-empty description.

        Returns:
            Mapping of attribute name to new value. Empty when nothing changes.
        """
        description = listing.description_raw or ""
        lines = split_lines(description)
        updates: dict[str, Any] = {}

        property_type = classify_property_type(listing.title, description)
        if listing.property_type != property_type.value:
            updates["property_type"] = property_type.value

        price = extract_price(description)
        if price is not None and self._should_overwrite_price(
            listing.price_value, price.value, price.tier
        ):
            updates["price_value"] = price.value
            updates["price_currency"] = price.currency
            updates["price_usd"] = price.usd

        if listing.area_m2 is None:
            area = extract_area(description)
            if area is not None:
                updates["area_m2"] = area

        if listing.rooms_text is None and listing.rooms_bedrooms is None:
            rooms = extract_rooms(description)
            if rooms is not None:
                updates["rooms_text"] = rooms.rooms_text
                updates["rooms_bedrooms"] = rooms.bedrooms
                updates["rooms_living"] = rooms.living

        if listing.floor is None or listing.total_floors is None:
            floor = extract_floor(description)
            if floor is not None:
                if listing.floor is None:
                    updates["floor"] = floor.floor
                if listing.total_floors is None and floor.total_floors is not None:
                    updates["total_floors"] = floor.total_floors

        if listing.condition_norm is None:
            condition = extract_condition(description)
            if condition is not None:
                updates["condition_norm"] = condition.value

        if not listing.address_text:
            address = pick_address_line(lines)
            if address:
                updates["address_text"] = address

        if not listing.building_name:
            building = pick_building_name(lines)
            if building:
                updates["building_name"] = building

        # Re-reading an explicit price yields the same values every pass
        return {key: value for key, value in updates.items() if getattr(listing, key) != value}

    def _should_overwrite_price(
        self, current: float | None, extracted: float, tier: PriceTier
    ) -> bool:
        if tier == PriceTier.EXPLICIT:
            return True
        if current is None or current == 0:
            return True
        return current < self._settings.min_plausible_price or current < extracted
