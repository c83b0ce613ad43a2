"""SQLAlchemy ORM models."""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from estate_feed.models.pydantic_models import PropertyType, SyncMode, SyncStatus


def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Source(Base):
    """A tracked channel."""

    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(50), default="telegram_channel", nullable=False)
    telegram_peer_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Watermark for incremental sync
    last_message_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Source(id={self.id}, username='{self.username}', last_message_id={self.last_message_id})>"


class ChannelMessage(Base):
    """Raw channel post."""

    __tablename__ = "telegram_messages"
    __table_args__ = (UniqueConstraint("source_id", "message_id", name="uq_message_source_msg"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    grouped_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    text_raw: Mapped[str | None] = mapped_column(Text, nullable=True)
    permalink: Mapped[str | None] = mapped_column(String(500), nullable=True)
    has_media: Mapped[bool] = mapped_column(Boolean, default=False)
    media_count: Mapped[int] = mapped_column(Integer, default=0)

    media: Mapped[list["Media"]] = relationship(
        "Media", back_populates="message", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<ChannelMessage(id={self.id}, message_id={self.message_id}, grouped_id={self.grouped_id})>"


class Listing(Base):
    """Real-estate listing derived from one or more channel messages."""

    __tablename__ = "listings"
    __table_args__ = (UniqueConstraint("source_id", "listing_key", name="uq_listing_source_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_key: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    description_raw: Mapped[str | None] = mapped_column(Text, nullable=True)
    permalink: Mapped[str | None] = mapped_column(String(500), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Pricing
    price_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    price_usd: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Property details
    area_m2: Mapped[float | None] = mapped_column(Float, nullable=True)
    floor: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_floors: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rooms_text: Mapped[str | None] = mapped_column(String(20), nullable=True)
    rooms_bedrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rooms_living: Mapped[int | None] = mapped_column(Integer, nullable=True)
    condition_norm: Mapped[str | None] = mapped_column(String(30), nullable=True)
    property_type: Mapped[str] = mapped_column(
        String(20), default=PropertyType.APARTMENT.value, nullable=False, index=True
    )

    # Location
    address_text: Mapped[str | None] = mapped_column(String(500), nullable=True)
    street: Mapped[str | None] = mapped_column(String(200), nullable=True)
    district: Mapped[str | None] = mapped_column(String(200), nullable=True)
    building_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    # Relationships
    images: Mapped[list["ListingImage"]] = relationship(
        "ListingImage",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingImage.position",
    )

    @property
    def image_urls(self) -> list[str]:
        """Public image URLs in display order."""
        return [image.url for image in self.images if image.url]

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, listing_key={self.listing_key}, price={self.price_value})>"


class ExcludedListing(Base):
    """Tombstone preventing a removed listing from being re-created."""

    __tablename__ = "excluded_listings"
    __table_args__ = (UniqueConstraint("source_id", "listing_key", name="uq_excluded_source_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sources.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_key: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    permalink: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<ExcludedListing(listing_key={self.listing_key}, reason='{self.reason}')>"


class Media(Base):
    """Downloaded attachment persisted to object storage."""

    __tablename__ = "telegram_media"
    __table_args__ = (
        UniqueConstraint("message_row_id", "storage_path", name="uq_media_message_path"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_row_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("telegram_messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(20), default="photo", nullable=False)
    storage_bucket: Mapped[str | None] = mapped_column(String(100), nullable=True)
    storage_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cdn_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    message: Mapped["ChannelMessage"] = relationship("ChannelMessage", back_populates="media")

    def __repr__(self) -> str:
        return f"<Media(id={self.id}, path='{self.storage_path}')>"


class ListingImage(Base):
    """Association between a listing and one of its media rows."""

    __tablename__ = "listing_images"
    __table_args__ = (UniqueConstraint("listing_id", "position", name="uq_listing_image_position"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    telegram_media_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("telegram_media.id", ondelete="SET NULL"), nullable=True
    )
    url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    position: Mapped[int] = mapped_column(BigInteger, nullable=False)

    listing: Mapped["Listing"] = relationship("Listing", back_populates="images")


class SyncJob(Base):
    """Record of a sync run started through the control surface or CLI."""

    __tablename__ = "sync_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mode: Mapped[str] = mapped_column(Enum(SyncMode), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(SyncStatus), default=SyncStatus.PENDING, nullable=False, index=True
    )

    # Progress tracking
    processed_messages: Mapped[int] = mapped_column(Integer, default=0)
    listings_touched: Mapped[int] = mapped_column(Integer, default=0)
    deleted_listings: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Error tracking
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SyncJob(id={self.id}, mode={self.mode}, status={self.status})>"
