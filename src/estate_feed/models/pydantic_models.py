"""Pydantic models for data validation."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class SyncMode(str, Enum):
    """Sync run modes."""

    BACKFILL = "backfill"
    INCREMENTAL = "incremental"
    CHECK_DELETED = "check_deleted"


class SyncStatus(str, Enum):
    """Status of a sync run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PropertyType(str, Enum):
    """Listing property categories."""

    APARTMENT = "apartment"
    COMMERCIAL = "commercial"
    HOUSE_LAND = "house_land"


class Condition(str, Enum):
    """Normalized listing condition codes."""

    WHITE_FRAME = "WHITE_FRAME"
    BLACK_FRAME = "BLACK_FRAME"
    RENOVATED = "RENOVATED"
    FURNISHED = "FURNISHED"
    UNDER_CONSTRUCTION = "UNDER_CONSTRUCTION"


class PriceTier(str, Enum):
    """Priority tier of a price candidate."""

    EXPLICIT = "explicit"
    NORMAL = "normal"


@dataclass(frozen=True)
class ChannelRef:
    """Resolved channel handle."""

    peer_id: int
    title: str | None = None
    username: str | None = None
    entity: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class ChannelPost:
    """A single channel message as seen by the sync engine.

    ``raw`` keeps the client-native message object so media can be
    downloaded without a second round trip.
    """

    message_id: int
    posted_at: datetime
    text: str | None = None
    grouped_id: int | None = None
    has_media: bool = False
    has_photo: bool = False
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def listing_key(self) -> int:
        """Identity shared by all photos of one ad."""
        return self.grouped_id if self.grouped_id is not None else self.message_id


class PriceResult(BaseModel):
    """Price extracted from listing text."""

    value: float
    currency: str
    usd: float | None = None
    tier: PriceTier = PriceTier.NORMAL

    model_config = ConfigDict(frozen=True)


class RoomsResult(BaseModel):
    """Room layout extracted from listing text."""

    rooms_text: str
    bedrooms: int
    living: int

    model_config = ConfigDict(frozen=True)


class FloorResult(BaseModel):
    """Floor and optional building height."""

    floor: int
    total_floors: int | None = None

    model_config = ConfigDict(frozen=True)


class ListingRead(BaseModel):
    """Listing data as read from the database."""

    id: int
    source_id: int
    listing_key: int
    message_id: int
    title: str | None = None
    description_raw: str | None = None
    permalink: str | None = None
    posted_at: datetime | None = None

    price_value: float | None = None
    price_currency: str | None = None
    price_usd: float | None = None
    area_m2: float | None = None
    floor: int | None = None
    total_floors: int | None = None
    rooms_text: str | None = None
    rooms_bedrooms: int | None = None
    rooms_living: int | None = None
    condition_norm: str | None = None
    property_type: str = PropertyType.APARTMENT.value
    address_text: str | None = None
    street: str | None = None
    district: str | None = None
    building_name: str | None = None
    lat: float | None = None
    lng: float | None = None

    image_urls: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ListingUpdate(BaseModel):
    """Partial update of typed listing fields.

    Only fields present in the payload are applied.
    """

    price_value: float | None = None
    price_currency: str | None = None
    price_usd: float | None = None
    area_m2: float | None = None
    floor: int | None = None
    total_floors: int | None = None
    rooms_text: str | None = None
    rooms_bedrooms: int | None = None
    rooms_living: int | None = None
    condition_norm: Condition | None = None
    property_type: PropertyType | None = None
    address_text: str | None = None
    street: str | None = None
    district: str | None = None
    building_name: str | None = None
    lat: float | None = None
    lng: float | None = None
    description_raw: str | None = None

    model_config = ConfigDict(extra="forbid")


class SyncResult(BaseModel):
    """Final result of a sync run."""

    mode: SyncMode
    processed_messages: int = Field(0, description="Messages handed to processing")
    listings_touched: int = Field(0, description="Distinct listings created or updated")
    skipped_excluded: int = Field(0, description="Messages skipped because of a tombstone")
    failed_messages: int = Field(0, description="Messages whose processing failed")
    last_message_id: int | None = Field(None, description="Watermark after the run")
    listing_ids: list[int] = Field(default_factory=list, description="Touched listing ids")
    checked_listings: int = Field(0, description="Listings verified against the channel")
    missing_candidates: int = Field(0, description="Listings absent from the channel")
    deleted_listings: int = Field(0, description="Listings tombstoned and removed")


class ExtractionResult(BaseModel):
    """Summary of an extraction pass."""

    descriptions_filled: int = 0
    processed: int = 0
    updated: int = 0
    skipped_empty: int = 0


class SyncJobRead(BaseModel):
    """Sync job data as read from the database."""

    id: int
    mode: SyncMode
    status: SyncStatus

    processed_messages: int = 0
    listings_touched: int = 0
    deleted_listings: int = 0

    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SyncState(BaseModel):
    """Control-surface view of the most recent sync run."""

    running: bool = False
    mode: SyncMode | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    last_error: str | None = None
    last_exit: str | None = Field(None, description="'success' or 'error' once finished")


class SyncProgress(BaseModel):
    """Progress update emitted while a sync run is iterating messages."""

    mode: SyncMode
    processed_messages: int = 0
    listings_touched: int = 0
    current_message_id: int | None = None
