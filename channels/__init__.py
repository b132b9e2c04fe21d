"""Transport adapters that carry activities between users and the bot."""
from channels.base import (
    ChannelError,
    InputSanitizer,
    MessageDeduplicator,
    TransportAdapter,
    TurnContext,
)
from channels.chat_adapter import ChatAdapter

__all__ = [
    "ChannelError", "InputSanitizer", "MessageDeduplicator",
    "TransportAdapter", "TurnContext",
    "ChatAdapter",
]
