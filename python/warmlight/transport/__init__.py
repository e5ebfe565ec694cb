"""Chat transport module."""

from warmlight.transport.client import (
    ChatTransportBase,
    FakeChatTransport,
    SentMessage,
    TelegramClient,
    get_transport,
)

__all__ = [
    "ChatTransportBase",
    "TelegramClient",
    "FakeChatTransport",
    "SentMessage",
    "get_transport",
]
