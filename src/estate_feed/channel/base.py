"""Channel client abstract class."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    stop_after_attempt,
    wait_fixed,
)

from estate_feed.models.pydantic_models import ChannelPost, ChannelRef

T = TypeVar("T")


@dataclass
class ChannelClientConfig:
    """Configuration for channel client behavior."""

    max_retries: int = 3
    retry_delay: float = 2.0
    connection_retries: int = 5


class ChannelClient(ABC):
    """Abstract read-only view of a messaging channel.

    Provides the capabilities the sync engine consumes:
    - resolve_channel(): turn a handle into a ChannelRef
    - iter_messages(): lazy iteration above an id, newest or oldest first
    - fetch_messages_by_ids(): existence check for a batch of ids
    - download_media(): photo bytes of a post

    Implementations own a session with an explicit lifetime and are used as
    async context managers.
    """

    def __init__(self, config: ChannelClientConfig | None = None) -> None:
        """Initialize base client.

        Args:
            config: Client configuration. Uses defaults if not provided.
        """
        self._config = config or ChannelClientConfig()

    @property
    def config(self) -> ChannelClientConfig:
        """Get client configuration."""
        return self._config

    async def __aenter__(self) -> "ChannelClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        return None

    @abstractmethod
    async def resolve_channel(self, handle: str) -> ChannelRef:
        """Resolve a channel handle.

        Args:
            handle: Channel username without '@'.

        Returns:
            ChannelRef with the stable peer id, title and username.
        """
        ...

    @abstractmethod
    def iter_messages(
        self, channel: ChannelRef, min_id: int | None = None, reverse: bool = False
    ) -> AsyncIterator[ChannelPost]:
        """Iterate channel posts, newest first unless reversed.

        Args:
            channel: Resolved channel.
            min_id: Only yield posts with an id strictly greater than this.
            reverse: Yield oldest first.

        Returns:
            Async iterator of ChannelPost. Not restartable.
        """
        ...

    @abstractmethod
    async def fetch_messages_by_ids(
        self, channel: ChannelRef, ids: list[int]
    ) -> list[ChannelPost]:
        """Fetch the posts that still exist among ids.

        Args:
            channel: Resolved channel.
            ids: Message ids to look up.

        Returns:
            Existing posts. Deleted ids are simply absent.
        """
        ...

    @abstractmethod
    async def download_media(self, post: ChannelPost) -> bytes | None:
        """Download the photo attached to a post.

        Args:
            post: Post carrying a photo.

        Returns:
            Raw bytes, or None when nothing could be downloaded.
        """
        ...

    async def with_retry(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
    ) -> T:
        """Execute an async operation with bounded retry logic.

        Args:
            operation: Async function to execute.

        Returns:
            Result of the operation.

        Raises:
            Exception: If all retries are exhausted.
        """
        last_exception: BaseException | None = None

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._config.max_retries),
                wait=wait_fixed(self._config.retry_delay),
                reraise=True,
            ):
                with attempt:
                    return await operation()
        except RetryError as e:
            if e.last_attempt.failed:
                last_exception = e.last_attempt.exception()
                if last_exception:
                    raise last_exception from e
            raise

        raise RuntimeError("Retry logic failed unexpectedly")
