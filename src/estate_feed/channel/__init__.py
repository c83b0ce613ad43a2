"""Channel clients."""

from estate_feed.channel.base import ChannelClient, ChannelClientConfig
from estate_feed.channel.telegram import TelegramChannelClient, create_session_string

__all__ = [
    "ChannelClient",
    "ChannelClientConfig",
    "TelegramChannelClient",
    "create_session_string",
]
