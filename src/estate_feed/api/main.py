"""FastAPI application factory and configuration."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from estate_feed import __version__
from estate_feed.api.routes import listings, sync
from estate_feed.config import AppSettings, load_settings, load_telegram_credentials
from estate_feed.database.engine import init_db
from estate_feed.storage import create_storage

logger = logging.getLogger(__name__)


def check_configuration() -> AppSettings:
    """Validate everything the server needs before it accepts requests.

    Returns:
        Loaded application settings.

    Raises:
        ConfigError: If Telegram credentials or the storage backend are unusable.
        FileNotFoundError: If ESTATE_FEED_CONFIG names a missing file.
        ValidationError: If the settings file does not match the schema.
    """
    settings = load_settings()
    load_telegram_credentials()
    create_storage(settings)
    return settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Fail startup on bad configuration and make sure the schema exists."""
    check_configuration()
    init_db()
    logger.info("estate-feed API %s started", __version__)
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="estate-feed API",
        description="Real-estate channel sync control and listing catalog API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.include_router(listings.router, prefix="/api/listings", tags=["listings"])
    app.include_router(sync.router, prefix="/api/sync", tags=["sync"])

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Create app instance for uvicorn
app = create_app()
