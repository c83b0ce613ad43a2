"""Wiring of one complete sync run: client session, sync, scoped extraction."""

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from estate_feed.channel.base import ChannelClient
from estate_feed.channel.telegram import TelegramChannelClient
from estate_feed.config import AppSettings, TelegramCredentials, load_telegram_credentials
from estate_feed.models.pydantic_models import (
    ExtractionResult,
    SyncMode,
    SyncProgress,
    SyncResult,
)
from estate_feed.services.extraction_service import ExtractionService
from estate_feed.services.sync_service import SyncService
from estate_feed.storage import ObjectStorage, create_storage

logger = logging.getLogger(__name__)


async def execute_sync(
    session: Session,
    mode: SyncMode,
    settings: AppSettings,
    credentials: TelegramCredentials | None = None,
    storage: ObjectStorage | None = None,
    client: ChannelClient | None = None,
    extract: bool = True,
    progress_callback: Callable[[SyncProgress], None] | None = None,
) -> tuple[SyncResult, ExtractionResult | None]:
    """Run one sync and, after an incremental run, extract the touched listings.

    Args:
        session: SQLAlchemy session instance.
        mode: Sync mode.
        settings: Application settings.
        credentials: Telegram credentials. Read from the environment if omitted.
        storage: Object storage. Built from settings if omitted.
        client: Channel client. A Telegram session is opened if omitted.
        extract: Run extraction after an incremental sync.
        progress_callback: Optional callback for progress updates.

    Returns:
        Tuple of (SyncResult, ExtractionResult or None).

    Raises:
        ConfigError: If credentials or storage settings are missing.
        DeletionGuardError: If deleted-check trips the safety guard.
    """
    credentials = credentials or load_telegram_credentials()
    storage = storage or create_storage(settings)
    channel_client = client or TelegramChannelClient(credentials)

    async with channel_client:
        service = SyncService(
            session,
            channel_client,
            storage,
            channel_handle=credentials.channel,
            settings=settings.sync,
            bucket=settings.storage.bucket,
        )
        result = await service.run(mode, progress_callback=progress_callback)

    extraction = None
    if extract and mode == SyncMode.INCREMENTAL:
        logger.info("Extracting fields for %d touched listings", len(result.listing_ids))
        extraction = ExtractionService(session, settings.extraction).run_extraction(
            listing_ids=result.listing_ids
        )

    return result, extraction
