"""
Transport Adapter — Base infrastructure for delivering and receiving activities.

Provides:
- ChannelError: structured error for transport operations
- MessageDeduplicator: TTL seen-set for redelivered inbound activities
- InputSanitizer: control-character stripping and length capping
- TurnContext: per-turn handle the bot uses to reply
- TransportAdapter: abstract base that runs turns and resumes stored
  conversations for proactive delivery
"""
from __future__ import annotations

import abc
import time
import structlog
from typing import Any, Awaitable, Callable, Optional, Union

from models.schemas import Activity, ConversationReference, SuggestedAction

logger = structlog.get_logger()

TurnLogic = Callable[["TurnContext"], Awaitable[None]]


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class ChannelError(Exception):
    """Base exception for all transport operations."""

    def __init__(self, message: str, channel: str = "", retryable: bool = False):
        self.channel = channel
        self.retryable = retryable
        super().__init__(message)


# ══════════════════════════════════════════════════════════════
#  DEDUPLICATION & SANITIZING
# ══════════════════════════════════════════════════════════════

class MessageDeduplicator:
    """TTL-based seen-set for deduplicating inbound activities."""

    def __init__(self, ttl_seconds: float = 300.0):
        self.ttl = ttl_seconds
        self._seen: dict[str, float] = {}

    def is_duplicate(self, key: str) -> bool:
        self._prune()
        if key in self._seen:
            return True
        self._seen[key] = time.monotonic()
        return False

    def _prune(self):
        cutoff = time.monotonic() - self.ttl
        for k in [k for k, t in self._seen.items() if t < cutoff]:
            del self._seen[k]


class InputSanitizer:
    def __init__(self, max_length: int = 4000):
        self.max_length = max_length

    def sanitize(self, content: str) -> str:
        if not content:
            return ""
        content = "".join(
            c for c in content if c in ("\n", "\t", "\r") or (ord(c) >= 32)
        )
        if len(content) > self.max_length:
            content = content[: self.max_length]
        return content.strip()


# ══════════════════════════════════════════════════════════════
#  TURN CONTEXT
# ══════════════════════════════════════════════════════════════

class TurnContext:
    """
    Everything the bot needs for one turn: the inbound activity, a way to
    reply, and a scratch dict that scoped state uses as its per-turn cache.
    """

    def __init__(self, adapter: TransportAdapter, activity: Activity):
        self.adapter = adapter
        self.activity = activity
        self.responded = False
        self.turn_state: dict[str, Any] = {}
        self.sent_activities: list[Activity] = []

    async def send_activity(
        self,
        activity_or_text: Union[Activity, str],
        suggested_actions: list[SuggestedAction] = None,
    ) -> Activity:
        if isinstance(activity_or_text, Activity):
            reply = activity_or_text
        else:
            reply = self.activity.create_reply(activity_or_text)
        if suggested_actions:
            reply.suggested_actions = list(suggested_actions)

        await self.adapter.send(self, reply)
        self.sent_activities.append(reply)
        self.responded = True
        return reply


# ══════════════════════════════════════════════════════════════
#  TRANSPORT ADAPTER (abstract base)
# ══════════════════════════════════════════════════════════════

class TransportAdapter(abc.ABC):
    """
    Base class for transports.

    Subclasses implement `send`. The base class deduplicates and sanitizes
    inbound activities, runs the turn logic and synthesizes turns for
    stored conversation references.
    """

    channel_id: str = "chat"

    def __init__(self, bot_id: str = "1"):
        self.bot_id = bot_id
        self._deduplicator = MessageDeduplicator()
        self._sanitizer = InputSanitizer()

    @abc.abstractmethod
    async def send(self, turn: TurnContext, activity: Activity) -> dict[str, Any]:
        ...

    async def process_activity(self, activity: Activity, logic: TurnLogic) -> list[Activity]:
        """Run one turn for an inbound activity and return the replies it produced."""
        if self._deduplicator.is_duplicate(activity.id):
            logger.info("duplicate_activity_dropped", activity_id=activity.id)
            return []

        activity.text = self._sanitizer.sanitize(activity.text)
        turn = TurnContext(self, activity)
        try:
            await logic(turn)
        except Exception as e:
            logger.error("turn_failed",
                         conversation_id=activity.conversation.id,
                         activity_type=activity.type.value,
                         error=str(e))
            raise
        return turn.sent_activities

    async def continue_conversation(
        self,
        reference: ConversationReference,
        callback: TurnLogic,
    ) -> Optional[TurnContext]:
        """Resume a stored conversation out-of-band and hand a bound turn to `callback`."""
        if not reference.conversation.id:
            raise ChannelError("Conversation reference has no conversation id", self.channel_id)
        turn = TurnContext(self, Activity.from_reference(reference))
        await callback(turn)
        return turn
