"""Tests for channel client retry behavior and the Telethon adapter."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from telethon.tl.types import Message, PeerChannel

from estate_feed.channel.base import ChannelClientConfig
from estate_feed.channel.telegram import TelegramChannelClient, to_channel_post
from estate_feed.config import ConfigError, TelegramCredentials
from estate_feed.models.pydantic_models import ChannelPost, ChannelRef

POSTED_AT = datetime(2026, 9, 1, 12, 0, tzinfo=timezone.utc)


def telethon_message(message_id: int, text: str = "", grouped_id: int | None = None) -> Message:
    return Message(
        id=message_id,
        peer_id=PeerChannel(channel_id=1001),
        date=POSTED_AT,
        message=text,
        grouped_id=grouped_id,
    )


@pytest.fixture
def credentials() -> TelegramCredentials:
    return TelegramCredentials(
        api_id=12345, api_hash="abcdef", session_string="1Aabc==", channel="tbilisiflats"
    )


@pytest.fixture
def client(credentials: TelegramCredentials) -> TelegramChannelClient:
    """Client with a mocked Telethon session already attached."""
    client = TelegramChannelClient(
        credentials, ChannelClientConfig(max_retries=2, retry_delay=0.01)
    )
    client._client = MagicMock()
    return client


class TestToChannelPost:
    def test_text_message(self) -> None:
        post = to_channel_post(telethon_message(42, "Квартира", grouped_id=7))

        assert post.message_id == 42
        assert post.posted_at == POSTED_AT
        assert post.text == "Квартира"
        assert post.grouped_id == 7
        assert post.listing_key == 7
        assert post.has_media is False
        assert post.has_photo is False

    def test_empty_text_is_none(self) -> None:
        post = to_channel_post(telethon_message(42))

        assert post.text is None
        assert post.listing_key == 42


class TestWithRetry:
    """Tests for ChannelClient.with_retry."""

    @pytest.mark.asyncio
    async def test_retry_then_success(self, client: TelegramChannelClient) -> None:
        calls = 0

        async def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls < 2:
                raise ConnectionError("reset")
            return "ok"

        assert await client.with_retry(flaky) == "ok"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_retry_exhausted(self, client: TelegramChannelClient) -> None:
        async def always_fails() -> None:
            raise ConnectionError("Always fails")

        with pytest.raises(ConnectionError, match="Always fails"):
            await client.with_retry(always_fails)


class TestTelegramChannelClient:
    """Tests for the Telethon-backed client with a mocked session."""

    @pytest.mark.asyncio
    async def test_not_started(self, credentials: TelegramCredentials) -> None:
        with pytest.raises(RuntimeError, match="not started"):
            await TelegramChannelClient(credentials).resolve_channel("tbilisiflats")

    @pytest.mark.asyncio
    async def test_start_requires_session(self, credentials: TelegramCredentials) -> None:
        no_session = credentials.model_copy(update={"session_string": None})

        with pytest.raises(ConfigError, match="auth"):
            async with TelegramChannelClient(no_session):
                pass

    @pytest.mark.asyncio
    async def test_resolve_channel(self, client: TelegramChannelClient) -> None:
        entity = MagicMock(id=1001, title="Tbilisi Flats", username="tbilisiflats")
        client._client.get_entity = AsyncMock(return_value=entity)

        channel = await client.resolve_channel("tbilisiflats")

        assert channel.peer_id == 1001
        assert channel.title == "Tbilisi Flats"
        assert channel.username == "tbilisiflats"
        assert channel.entity is entity

    @pytest.mark.asyncio
    async def test_iter_messages_skips_service_messages(
        self, client: TelegramChannelClient
    ) -> None:
        service = MagicMock(name="MessageService")

        async def history(*args, **kwargs):
            yield telethon_message(4, "new")
            yield service
            yield telethon_message(2, "old")

        client._client.iter_messages = MagicMock(side_effect=history)
        channel = ChannelRef(peer_id=1001, entity="entity")

        posts = [post async for post in client.iter_messages(channel, min_id=1)]

        assert [post.message_id for post in posts] == [4, 2]
        client._client.iter_messages.assert_called_once_with("entity", reverse=False, min_id=1)

    @pytest.mark.asyncio
    async def test_iter_messages_oldest_first(self, client: TelegramChannelClient) -> None:
        async def history(*args, **kwargs):
            yield telethon_message(6, "a")
            yield telethon_message(7, "b")

        client._client.iter_messages = MagicMock(side_effect=history)
        channel = ChannelRef(peer_id=1001, entity="entity")

        posts = [post async for post in client.iter_messages(channel, min_id=5, reverse=True)]

        assert [post.message_id for post in posts] == [6, 7]
        client._client.iter_messages.assert_called_once_with("entity", reverse=True, min_id=5)

    @pytest.mark.asyncio
    async def test_fetch_messages_by_ids_drops_missing(
        self, client: TelegramChannelClient
    ) -> None:
        client._client.get_messages = AsyncMock(
            return_value=[telethon_message(1, "a"), None, telethon_message(3, "c")]
        )

        posts = await client.fetch_messages_by_ids(ChannelRef(peer_id=1001), [1, 2, 3])

        assert [post.message_id for post in posts] == [1, 3]

    @pytest.mark.asyncio
    async def test_download_media(self, client: TelegramChannelClient) -> None:
        client._client.download_media = AsyncMock(return_value=b"jpeg")
        raw = telethon_message(5)
        post = ChannelPost(message_id=5, posted_at=POSTED_AT, has_photo=True, raw=raw)

        assert await client.download_media(post) == b"jpeg"
        client._client.download_media.assert_awaited_once_with(raw, file=bytes)

    @pytest.mark.asyncio
    async def test_download_without_raw(self, client: TelegramChannelClient) -> None:
        post = ChannelPost(message_id=5, posted_at=POSTED_AT, has_photo=True)
        assert await client.download_media(post) is None
