"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Create sources, messages, listings, tombstones, media and sync job tables.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "sources",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("telegram_peer_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=True),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("last_message_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("telegram_peer_id"),
    )

    op.create_table(
        "telegram_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("message_id", sa.BigInteger(), nullable=False),
        sa.Column("grouped_id", sa.BigInteger(), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("text_raw", sa.Text(), nullable=True),
        sa.Column("permalink", sa.String(length=500), nullable=True),
        sa.Column("has_media", sa.Boolean(), nullable=True),
        sa.Column("media_count", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["source_id"], ["sources.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_id", "message_id", name="uq_message_source_msg"),
    )
    op.create_index("ix_telegram_messages_source_id", "telegram_messages", ["source_id"])
    op.create_index("ix_telegram_messages_grouped_id", "telegram_messages", ["grouped_id"])

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("listing_key", sa.BigInteger(), nullable=False),
        sa.Column("message_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=True),
        sa.Column("description_raw", sa.Text(), nullable=True),
        sa.Column("permalink", sa.String(length=500), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("price_value", sa.Float(), nullable=True),
        sa.Column("price_currency", sa.String(length=3), nullable=True),
        sa.Column("price_usd", sa.Float(), nullable=True),
        sa.Column("area_m2", sa.Float(), nullable=True),
        sa.Column("floor", sa.Integer(), nullable=True),
        sa.Column("total_floors", sa.Integer(), nullable=True),
        sa.Column("rooms_text", sa.String(length=20), nullable=True),
        sa.Column("rooms_bedrooms", sa.Integer(), nullable=True),
        sa.Column("rooms_living", sa.Integer(), nullable=True),
        sa.Column("condition_norm", sa.String(length=30), nullable=True),
        sa.Column("property_type", sa.String(length=20), nullable=False),
        sa.Column("address_text", sa.String(length=500), nullable=True),
        sa.Column("street", sa.String(length=200), nullable=True),
        sa.Column("district", sa.String(length=200), nullable=True),
        sa.Column("building_name", sa.String(length=200), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["source_id"], ["sources.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_id", "listing_key", name="uq_listing_source_key"),
    )
    op.create_index("ix_listings_source_id", "listings", ["source_id"])
    op.create_index("ix_listings_property_type", "listings", ["property_type"])

    op.create_table(
        "excluded_listings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("listing_key", sa.BigInteger(), nullable=False),
        sa.Column("message_id", sa.BigInteger(), nullable=True),
        sa.Column("permalink", sa.String(length=500), nullable=True),
        sa.Column("reason", sa.String(length=100), nullable=True),
        sa.Column("deleted_by", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["source_id"], ["sources.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_id", "listing_key", name="uq_excluded_source_key"),
    )
    op.create_index("ix_excluded_listings_source_id", "excluded_listings", ["source_id"])

    op.create_table(
        "telegram_media",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("message_row_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("storage_bucket", sa.String(length=100), nullable=True),
        sa.Column("storage_path", sa.String(length=500), nullable=True),
        sa.Column("cdn_url", sa.String(length=1000), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["message_row_id"], ["telegram_messages.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("message_row_id", "storage_path", name="uq_media_message_path"),
    )
    op.create_index("ix_telegram_media_message_row_id", "telegram_media", ["message_row_id"])

    op.create_table(
        "listing_images",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("telegram_media_id", sa.Integer(), nullable=True),
        sa.Column("url", sa.String(length=1000), nullable=True),
        sa.Column("position", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["telegram_media_id"], ["telegram_media.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("listing_id", "position", name="uq_listing_image_position"),
    )
    op.create_index("ix_listing_images_listing_id", "listing_images", ["listing_id"])

    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "mode",
            sa.Enum("BACKFILL", "INCREMENTAL", "CHECK_DELETED", name="syncmode"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("PENDING", "RUNNING", "COMPLETED", "FAILED", name="syncstatus"),
            nullable=False,
        ),
        sa.Column("processed_messages", sa.Integer(), nullable=True),
        sa.Column("listings_touched", sa.Integer(), nullable=True),
        sa.Column("deleted_listings", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_jobs_status", "sync_jobs", ["status"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("ix_sync_jobs_status", table_name="sync_jobs")
    op.drop_table("sync_jobs")
    op.drop_index("ix_listing_images_listing_id", table_name="listing_images")
    op.drop_table("listing_images")
    op.drop_index("ix_telegram_media_message_row_id", table_name="telegram_media")
    op.drop_table("telegram_media")
    op.drop_index("ix_excluded_listings_source_id", table_name="excluded_listings")
    op.drop_table("excluded_listings")
    op.drop_index("ix_listings_property_type", table_name="listings")
    op.drop_index("ix_listings_source_id", table_name="listings")
    op.drop_table("listings")
    op.drop_index("ix_telegram_messages_grouped_id", table_name="telegram_messages")
    op.drop_index("ix_telegram_messages_source_id", table_name="telegram_messages")
    op.drop_table("telegram_messages")
    op.drop_table("sources")
