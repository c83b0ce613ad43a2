"""Shared fixtures: database sessions, an in-memory channel and storage."""

from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from estate_feed.channel.base import ChannelClient
from estate_feed.models.db_models import Base
from estate_feed.models.pydantic_models import ChannelPost, ChannelRef
from estate_feed.storage.local import LocalObjectStorage

CHANNEL = ChannelRef(peer_id=1001, title="Tbilisi Flats", username="tbilisiflats")


def make_post(
    message_id: int,
    text: str | None = None,
    grouped_id: int | None = None,
    photo: bool = False,
    age_days: float = 1,
) -> ChannelPost:
    """Build a channel post posted ``age_days`` ago."""
    return ChannelPost(
        message_id=message_id,
        posted_at=datetime.now(timezone.utc) - timedelta(days=age_days),
        text=text,
        grouped_id=grouped_id,
        has_media=photo,
        has_photo=photo,
    )


class FakeChannelClient(ChannelClient):
    """Channel backed by a dict of posts."""

    def __init__(self, posts: list[ChannelPost] | None = None, channel: ChannelRef = CHANNEL):
        super().__init__()
        self.channel = channel
        self.posts = {post.message_id: post for post in posts or []}
        self.failing_batches: set[int] = set()
        self.fail_iteration_after: int | None = None
        self.fetch_calls: list[list[int]] = []
        self.downloads: list[int] = []

    def add(self, *posts: ChannelPost) -> None:
        for post in posts:
            self.posts[post.message_id] = post

    def delete(self, *message_ids: int) -> None:
        for message_id in message_ids:
            self.posts.pop(message_id, None)

    async def resolve_channel(self, handle: str) -> ChannelRef:
        return self.channel

    async def iter_messages(
        self, channel: ChannelRef, min_id: int | None = None, reverse: bool = False
    ) -> AsyncIterator[ChannelPost]:
        yielded = 0
        for message_id in sorted(self.posts, reverse=not reverse):
            if min_id is not None and message_id <= min_id:
                continue
            if self.fail_iteration_after is not None and yielded >= self.fail_iteration_after:
                raise ConnectionError("connection lost")
            yield self.posts[message_id]
            yielded += 1

    async def fetch_messages_by_ids(self, channel: ChannelRef, ids: list[int]) -> list[ChannelPost]:
        call_number = len(self.fetch_calls)
        self.fetch_calls.append(list(ids))
        if call_number in self.failing_batches:
            raise ConnectionError("flood wait")
        return [self.posts[i] for i in ids if i in self.posts]

    async def download_media(self, post: ChannelPost) -> bytes | None:
        self.downloads.append(post.message_id)
        return f"jpeg-{post.message_id}".encode()


@pytest.fixture
def test_engine(tmp_path: Path):
    """Create a test database engine."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session_factory(test_engine):
    """Create a session factory for the test database."""
    return sessionmaker(bind=test_engine)


@pytest.fixture
def session(session_factory):
    """Create a test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    """Local object storage rooted in a temp directory."""
    return LocalObjectStorage(root=tmp_path / "media")


@pytest.fixture
def channel_client() -> FakeChannelClient:
    """Empty fake channel."""
    return FakeChannelClient()

