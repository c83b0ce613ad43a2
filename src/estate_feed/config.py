"""YAML settings and environment-based credentials."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


class SyncSettings(BaseModel):
    """Sync engine tuning."""

    lookback_days: int = Field(90, ge=1)
    check_batch_size: int = Field(100, ge=1)
    max_missing_ratio: float = Field(0.6, gt=0, le=1)
    min_listings_for_guard: int = Field(20, ge=0)
    job_retention_days: int = Field(30, ge=1)

    model_config = ConfigDict(frozen=True)


class ExtractionSettings(BaseModel):
    """Extraction orchestrator tuning."""

    batch_size: int = Field(500, ge=1)
    min_plausible_price: float = Field(1000, ge=0)

    model_config = ConfigDict(frozen=True)


class StorageSettings(BaseModel):
    """Object storage location."""

    backend: str = "local"
    bucket: str = "listing-images"
    root: Path | None = None
    public_base_url: str | None = None

    model_config = ConfigDict(frozen=True)


class AppSettings(BaseModel):
    """Top-level application settings."""

    sync: SyncSettings = Field(default_factory=SyncSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = ConfigDict(frozen=True)


class TelegramCredentials(BaseModel):
    """Credentials and target channel for the Telegram session."""

    api_id: int
    api_hash: str
    session_string: str | None = None
    channel: str

    model_config = ConfigDict(frozen=True)


class SupabaseCredentials(BaseModel):
    """Supabase project URL and service key."""

    url: str
    service_key: str

    model_config = ConfigDict(frozen=True)


def _get_default_config_path() -> Path:
    """Get the default config path relative to project root."""
    return Path(__file__).parent.parent.parent / "config" / "settings.yaml"


def load_settings(path: Path | None = None) -> AppSettings:
    """Load and validate settings from YAML.

    An explicit path must exist. Without one, ESTATE_FEED_CONFIG or the
    default config/settings.yaml is used when present, else defaults apply.
    The storage backend may be overridden with ESTATE_FEED_STORAGE_BACKEND
    and the local media root with ESTATE_FEED_MEDIA_DIR.

    Args:
        path: Path to YAML settings file.

    Returns:
        Validated AppSettings instance.

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist.
        yaml.YAMLError: If YAML parsing fails.
        ValidationError: If config doesn't match expected schema.
    """
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    elif env_path := os.environ.get("ESTATE_FEED_CONFIG"):
        path = Path(env_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    else:
        path = _get_default_config_path()

    raw_config: dict[str, Any] | None = None
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)

    # Handle empty config file
    if raw_config is None:
        raw_config = {}

    storage = dict(raw_config.get("storage") or {})
    if backend := os.environ.get("ESTATE_FEED_STORAGE_BACKEND"):
        storage["backend"] = backend
    if media_dir := os.environ.get("ESTATE_FEED_MEDIA_DIR"):
        storage["root"] = media_dir

    return AppSettings(
        sync=SyncSettings(**(raw_config.get("sync") or {})),
        extraction=ExtractionSettings(**(raw_config.get("extraction") or {})),
        storage=StorageSettings(**storage),
    )


def normalize_channel_handle(handle: str) -> str:
    """Strip whitespace and a leading '@' from a channel handle."""
    return handle.strip().lstrip("@")


def load_telegram_credentials(require_session: bool = True) -> TelegramCredentials:
    """Read Telegram credentials from the environment.

    Args:
        require_session: Whether TELEGRAM_SESSION_STRING must be set.
            Interactive login is the only caller that passes False.

    Returns:
        TelegramCredentials instance.

    Raises:
        ConfigError: If a required variable is missing or malformed.
    """
    api_id = os.environ.get("TELEGRAM_API_ID", "").strip()
    api_hash = os.environ.get("TELEGRAM_API_HASH", "").strip()
    session_string = os.environ.get("TELEGRAM_SESSION_STRING", "").strip() or None
    channel = normalize_channel_handle(os.environ.get("TELEGRAM_CHANNEL", ""))

    missing = []
    if not api_id:
        missing.append("TELEGRAM_API_ID")
    if not api_hash:
        missing.append("TELEGRAM_API_HASH")
    if require_session and not session_string:
        missing.append("TELEGRAM_SESSION_STRING")
    if not channel:
        missing.append("TELEGRAM_CHANNEL")
    if missing:
        raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

    if not api_id.isdigit():
        raise ConfigError("TELEGRAM_API_ID must be an integer")

    return TelegramCredentials(
        api_id=int(api_id),
        api_hash=api_hash,
        session_string=session_string,
        channel=channel,
    )


def load_supabase_credentials() -> SupabaseCredentials:
    """Read Supabase credentials from the environment.

    Raises:
        ConfigError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is missing.
    """
    url = os.environ.get("SUPABASE_URL", "").strip()
    service_key = os.environ.get("SUPABASE_SERVICE_KEY", "").strip()
    if not url or not service_key:
        raise ConfigError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    return SupabaseCredentials(url=url, service_key=service_key)
