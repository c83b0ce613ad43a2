"""Telegram channel access through Telethon."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from telethon import TelegramClient
from telethon.sessions import StringSession
from telethon.tl.types import Message, MessageMediaDocument, MessageMediaPhoto

from estate_feed.channel.base import ChannelClient, ChannelClientConfig
from estate_feed.config import ConfigError, TelegramCredentials
from estate_feed.models.pydantic_models import ChannelPost, ChannelRef

logger = logging.getLogger(__name__)


def to_channel_post(message: Message) -> ChannelPost:
    """Convert a Telethon message into a ChannelPost.

    Args:
        message: Telethon Message.

    Returns:
        ChannelPost keeping the original message in ``raw``.
    """
    has_media = isinstance(message.media, (MessageMediaPhoto, MessageMediaDocument))
    return ChannelPost(
        message_id=message.id,
        posted_at=message.date,
        text=message.message or None,
        grouped_id=message.grouped_id,
        has_media=has_media,
        has_photo=message.photo is not None,
        raw=message,
    )


class TelegramChannelClient(ChannelClient):
    """Channel client backed by a Telethon user session.

    Usage:
        async with TelegramChannelClient(credentials) as client:
            channel = await client.resolve_channel("some_channel")
            async for post in client.iter_messages(channel):
                ...
    """

    def __init__(
        self,
        credentials: TelegramCredentials,
        config: ChannelClientConfig | None = None,
    ) -> None:
        """Initialize the client without connecting.

        Args:
            credentials: API id, hash and session string.
            config: Client configuration. Uses defaults if not provided.
        """
        super().__init__(config)
        self._credentials = credentials
        self._client: TelegramClient | None = None

    async def __aenter__(self) -> "TelegramChannelClient":
        """Enter async context manager - connect the session."""
        await self._start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager - disconnect the session."""
        await self._stop()

    async def _start(self) -> None:
        if self._client is not None:
            return

        if not self._credentials.session_string:
            raise ConfigError("TELEGRAM_SESSION_STRING not set. Run 'estate-feed auth' first.")

        client = TelegramClient(
            StringSession(self._credentials.session_string),
            self._credentials.api_id,
            self._credentials.api_hash,
            connection_retries=self._config.connection_retries,
        )
        await client.connect()
        if not await client.is_user_authorized():
            await client.disconnect()
            raise ConfigError("Telegram session is not authorized. Run 'estate-feed auth' again.")

        self._client = client
        logger.debug("Telegram session connected")

    async def _stop(self) -> None:
        if self._client is None:
            return
        await self._client.disconnect()
        self._client = None
        logger.debug("Telegram session disconnected")

    def _check_started(self) -> TelegramClient:
        """Return the live client or raise if not started."""
        if self._client is None:
            raise RuntimeError("TelegramChannelClient not started. Use 'async with' context.")
        return self._client

    async def resolve_channel(self, handle: str) -> ChannelRef:
        client = self._check_started()
        entity = await self.with_retry(lambda: client.get_entity(handle))
        channel = ChannelRef(
            peer_id=int(entity.id),
            title=getattr(entity, "title", None),
            username=getattr(entity, "username", None),
            entity=entity,
        )
        logger.info("Found channel: %s (@%s)", channel.title, channel.username)
        return channel

    async def iter_messages(
        self, channel: ChannelRef, min_id: int | None = None, reverse: bool = False
    ) -> AsyncIterator[ChannelPost]:
        client = self._check_started()
        kwargs: dict[str, Any] = {"reverse": reverse}
        if min_id:
            kwargs["min_id"] = min_id

        async for message in client.iter_messages(channel.entity or channel.peer_id, **kwargs):
            # Service messages and empties carry no listing content
            if not isinstance(message, Message) or message.date is None:
                continue
            yield to_channel_post(message)

    async def fetch_messages_by_ids(
        self, channel: ChannelRef, ids: list[int]
    ) -> list[ChannelPost]:
        client = self._check_started()
        messages = await self.with_retry(
            lambda: client.get_messages(channel.entity or channel.peer_id, ids=ids)
        )
        return [to_channel_post(m) for m in messages or [] if isinstance(m, Message) and m.id]

    async def download_media(self, post: ChannelPost) -> bytes | None:
        client = self._check_started()
        if post.raw is None:
            return None
        data = await self.with_retry(lambda: client.download_media(post.raw, file=bytes))
        return data or None


async def create_session_string(api_id: int, api_hash: str) -> str:
    """Log in interactively and return a reusable session string.

    Telethon prompts for the phone number, login code and 2FA password on
    the terminal.

    Args:
        api_id: Telegram API id.
        api_hash: Telegram API hash.

    Returns:
        Serialized StringSession.
    """
    client = TelegramClient(StringSession(), api_id, api_hash)
    await client.start()
    try:
        return client.session.save()
    finally:
        await client.disconnect()
