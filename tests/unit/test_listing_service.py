"""Tests for ListingService."""

import pytest
from pydantic import ValidationError
from sqlalchemy.orm import Session

from conftest import make_post
from estate_feed.database.repository import (
    ExclusionRepository,
    ListingRepository,
    MediaRepository,
    MessageRepository,
    SourceRepository,
)
from estate_feed.models.db_models import Listing, Media, Source
from estate_feed.models.pydantic_models import Condition, ListingUpdate, PropertyType
from estate_feed.services.listing_service import (
    MANUAL_DELETE_REASON,
    ListingNotFoundError,
    ListingService,
    ListingServiceError,
)
from estate_feed.services.media_service import MEDIA_CONTENT_TYPE, media_storage_path
from estate_feed.storage.local import LocalObjectStorage


@pytest.fixture
def source(session: Session) -> Source:
    return SourceRepository(session).upsert_source(1001, "Tbilisi Flats", "tbilisiflats")


@pytest.fixture
def listing(session: Session, source: Source) -> Listing:
    listing, _ = ListingRepository(session).upsert_listing(
        source.id, make_post(20, "Квартира", photo=True), "https://t.me/tbilisiflats/20"
    )
    return listing


@pytest.fixture
def service(session: Session, storage: LocalObjectStorage) -> ListingService:
    return ListingService(session, storage=storage)


def attach_photo(session: Session, storage: LocalObjectStorage, listing: Listing) -> str:
    """Store a photo for the listing the way the media pipeline does."""
    row = MessageRepository(session).get_message(listing.source_id, listing.message_id)
    if row is None:
        row = MessageRepository(session).upsert_message(
            listing.source_id, make_post(listing.message_id, "Квартира", photo=True), None
        )
    path = media_storage_path(listing.source_id, listing.message_id)
    storage.upload("listing-images", path, b"jpeg", content_type=MEDIA_CONTENT_TYPE)
    url = storage.public_url("listing-images", path)
    repo = MediaRepository(session)
    media = repo.upsert_media(row.id, "listing-images", path, url)
    repo.link_to_listing(listing.id, media.id, url, position=listing.message_id)
    return path


class TestGetListings:
    def test_pagination_and_total(self, session: Session, source: Source) -> None:
        repo = ListingRepository(session)
        for message_id in range(1, 6):
            repo.upsert_listing(source.id, make_post(message_id, f"ad {message_id}"), None)

        listings, total = ListingService(session).get_listings(limit=2, offset=0)

        assert total == 5
        assert len(listings) == 2

    def test_property_type_filter(self, service: ListingService, listing: Listing) -> None:
        listings, total = service.get_listings(property_type=PropertyType.COMMERCIAL)

        assert listings == []
        assert total == 0

    def test_extracted_field_filters_and_sort(self, session: Session, source: Source) -> None:
        repo = ListingRepository(session)
        ids = []
        for message_id, price, area, condition in [
            (1, 90000, 60.0, "RENOVATED"),
            (2, 50000, 45.0, "RENOVATED"),
            (3, 120000, 80.0, "WHITE_FRAME"),
        ]:
            listing, _ = repo.upsert_listing(source.id, make_post(message_id, "ad"), None)
            repo.update_listing(
                listing.id, price_usd=price, area_m2=area, condition_norm=condition
            )
            ids.append(listing.id)

        listings, total = ListingService(session).get_listings(
            condition=Condition.RENOVATED, area_min=40, sort_by="price", sort_order="asc"
        )

        assert total == 2
        assert [x.id for x in listings] == [ids[1], ids[0]]

    def test_get_listing(self, service: ListingService, listing: Listing) -> None:
        result = service.get_listing(listing.id)

        assert result.id == listing.id
        assert result.permalink == "https://t.me/tbilisiflats/20"
        assert result.image_urls == []
        assert service.get_listing(999) is None


class TestUpdateListing:
    """Tests for manual field edits."""

    def test_price_edit_is_usd(self, service: ListingService, listing: Listing) -> None:
        result = service.update_listing(listing.id, ListingUpdate(price_value=120000))

        assert result.price_value == 120000
        assert result.price_currency == "USD"
        assert result.price_usd == 120000

    def test_clearing_price(self, service: ListingService, listing: Listing) -> None:
        service.update_listing(listing.id, ListingUpdate(price_value=120000))

        result = service.update_listing(listing.id, ListingUpdate(price_value=None))

        assert result.price_value is None
        assert result.price_currency is None
        assert result.price_usd is None

    def test_only_set_fields_change(self, service: ListingService, listing: Listing) -> None:
        service.update_listing(listing.id, ListingUpdate(area_m2=85, floor=5))

        result = service.update_listing(
            listing.id, ListingUpdate(condition_norm=Condition.RENOVATED)
        )

        assert result.area_m2 == 85
        assert result.floor == 5
        assert result.condition_norm == "RENOVATED"

    def test_clearing_property_type_resets_to_apartment(
        self, service: ListingService, listing: Listing
    ) -> None:
        service.update_listing(listing.id, ListingUpdate(property_type=PropertyType.COMMERCIAL))

        result = service.update_listing(listing.id, ListingUpdate(property_type=None))

        assert result.property_type == PropertyType.APARTMENT

    def test_not_found(self, service: ListingService) -> None:
        with pytest.raises(ListingNotFoundError):
            service.update_listing(999, ListingUpdate(area_m2=50))

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ListingUpdate(price=1)


class TestDeleteListing:
    """Tests for manual deletion."""

    def test_tombstone_and_cleanup(
        self,
        session: Session,
        storage: LocalObjectStorage,
        service: ListingService,
        listing: Listing,
    ) -> None:
        path = attach_photo(session, storage, listing)
        listing_id = listing.id
        source_id = listing.source_id

        service.delete_listing(listing_id, deleted_by="operator")

        assert session.query(Listing).filter(Listing.id == listing_id).first() is None
        assert session.query(Media).count() == 0
        assert not (storage.root / "listing-images" / path).exists()
        exclusion = ExclusionRepository(session).get_exclusions(source_id)[0]
        assert exclusion.listing_key == 20
        assert exclusion.reason == MANUAL_DELETE_REASON
        assert exclusion.deleted_by == "operator"
        assert exclusion.permalink == "https://t.me/tbilisiflats/20"

    def test_custom_reason(
        self, session: Session, service: ListingService, listing: Listing
    ) -> None:
        source_id = listing.source_id

        service.delete_listing(listing.id, reason="sold")

        assert ExclusionRepository(session).get_exclusions(source_id)[0].reason == "sold"

    def test_not_found(self, service: ListingService) -> None:
        with pytest.raises(ListingNotFoundError):
            service.delete_listing(999)

    def test_requires_storage(self, session: Session, listing: Listing) -> None:
        with pytest.raises(ListingServiceError):
            ListingService(session).delete_listing(listing.id)
