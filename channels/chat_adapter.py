"""
Chat Transport Adapter — WebSocket-based real-time messaging.

Provides:
- Connection lifecycle per conversation with superseding
- Offline queue with drain-on-reconnect for proactive deliveries
  (notifications, job completions) to conversations not connected right now
- Heartbeat handling
- Client event parsing into activities (message, conversationUpdate)
"""
from __future__ import annotations

import json
import time
import uuid
import structlog
from typing import Any, Optional
from datetime import datetime, timezone
from dataclasses import dataclass, field
from collections import deque

from models.schemas import Activity, ActivityType, ChannelAccount, ConversationAccount
from channels.base import TransportAdapter, TurnContext

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
#  CONNECTION & QUEUE MODELS
# ══════════════════════════════════════════════════════════════

class ConnectionState:
    """Tracks a single WebSocket connection."""

    def __init__(self, conversation_id: str, ws: Any):
        self.conversation_id = conversation_id
        self.ws = ws
        self.connected_at = datetime.now(timezone.utc)
        self.last_heartbeat = time.monotonic()
        self.message_count: int = 0


@dataclass
class QueuedMessage:
    """Activity queued for delivery when the conversation reconnects."""
    payload: dict[str, Any]
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ══════════════════════════════════════════════════════════════
#  CHAT ADAPTER
# ══════════════════════════════════════════════════════════════

class ChatAdapter(TransportAdapter):
    """
    Real-time chat over WebSockets with offline queue.

    One connection per conversation id; a new connection replaces the old
    one and receives everything queued while the conversation was offline.
    """

    channel_id = "chat"

    def __init__(self, bot_id: str = "1", bot_name: str = "Niles", max_queue_size: int = 100):
        super().__init__(bot_id=bot_id)
        self.bot_name = bot_name
        self._connections: dict[str, ConnectionState] = {}
        self._offline_queues: dict[str, deque[QueuedMessage]] = {}
        self._max_queue_size = max_queue_size

    @property
    def bot_account(self) -> ChannelAccount:
        return ChannelAccount(id=self.bot_id, name=self.bot_name)

    # ── Connection management ─────────────────────────────────

    async def register_connection(self, conversation_id: str, ws: Any) -> None:
        existing = self._connections.get(conversation_id)
        if existing:
            try:
                await existing.ws.close()
            except Exception as e:
                logger.debug("superseded_close_failed", conversation_id=conversation_id, error=str(e))
            logger.info("connection_superseded", conversation_id=conversation_id)

        self._connections[conversation_id] = ConnectionState(conversation_id, ws)
        logger.info("connection_registered", conversation_id=conversation_id)
        await self._drain_queue(conversation_id, ws)

    async def remove_connection(self, conversation_id: str, ws: Any = None) -> None:
        """Drop the conversation's connection; with `ws`, only if it is still the current one."""
        conn = self._connections.get(conversation_id)
        if conn is None or (ws is not None and conn.ws is not ws):
            return
        del self._connections[conversation_id]
        logger.info("connection_removed", conversation_id=conversation_id)

    def is_connected(self, conversation_id: str) -> bool:
        return conversation_id in self._connections

    # ── Send ──────────────────────────────────────────────────

    async def send(self, turn: TurnContext, activity: Activity) -> dict[str, Any]:
        conversation_id = activity.conversation.id
        payload = {
            "type": "message",
            "message_id": activity.id,
            "conversation_id": conversation_id,
            "text": activity.text,
            "suggested_actions": [a.model_dump() for a in activity.suggested_actions],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        conn = self._connections.get(conversation_id)
        if not conn:
            # Replies to an inbound turn go back in the HTTP response; only
            # proactive deliveries wait for the conversation to reconnect
            if turn.activity.type != ActivityType.EVENT:
                return {"status": "returned", "message_id": activity.id}
            self._enqueue(conversation_id, payload)
            return {"status": "queued", "message_id": activity.id}

        try:
            await conn.ws.send_text(json.dumps(payload))
            conn.message_count += 1
            return {"status": "delivered", "message_id": activity.id}
        except Exception as e:
            # Connection broken: remove and queue
            self._connections.pop(conversation_id, None)
            self._enqueue(conversation_id, payload)
            logger.warning("chat_send_failed_queued", conversation_id=conversation_id, error=str(e))
            return {"status": "queued", "message_id": activity.id, "error": str(e)}

    # ── Client event handling ─────────────────────────────────

    def handle_client_event(
        self, conversation_id: str, user_id: str, event: dict[str, Any]
    ) -> Optional[Activity]:
        """
        Turn a client event into an inbound activity.
        Returns None for heartbeats, acks and empty messages.
        """
        event_type = event.get("type", "")

        if event_type == "heartbeat":
            conn = self._connections.get(conversation_id)
            if conn:
                conn.last_heartbeat = time.monotonic()
            return None

        sender = ChannelAccount(id=event.get("sender_id") or user_id, name=event.get("sender_name", ""))
        conversation = ConversationAccount(id=conversation_id)

        if event_type == "message":
            text = event.get("text") or event.get("content") or ""
            if not text:
                return None
            return Activity(
                type=ActivityType.MESSAGE,
                id=event.get("message_id") or uuid.uuid4().hex,
                channel_id=self.channel_id,
                sender=sender,
                recipient=self.bot_account,
                conversation=conversation,
                text=text,
                entities=event.get("entities", []),
            )

        if event_type == "conversationUpdate":
            members = [ChannelAccount(**m) for m in event.get("members_added", [])]
            return Activity(
                type=ActivityType.CONVERSATION_UPDATE,
                channel_id=self.channel_id,
                sender=sender,
                recipient=self.bot_account,
                conversation=conversation,
                members_added=members,
            )

        return None

    # ── Offline queue ─────────────────────────────────────────

    def _enqueue(self, conversation_id: str, payload: dict[str, Any]) -> None:
        if conversation_id not in self._offline_queues:
            self._offline_queues[conversation_id] = deque(maxlen=self._max_queue_size)
        self._offline_queues[conversation_id].append(QueuedMessage(payload=payload))

    def queued_messages(self, conversation_id: str) -> list[dict[str, Any]]:
        return [m.payload for m in self._offline_queues.get(conversation_id, ())]

    async def _drain_queue(self, conversation_id: str, ws: Any) -> None:
        queue = self._offline_queues.pop(conversation_id, None)
        if not queue:
            return
        for msg in queue:
            payload = {**msg.payload, "queued_at": msg.queued_at.isoformat()}
            try:
                await ws.send_text(json.dumps(payload))
            except Exception as e:
                logger.warning("queue_drain_interrupted", conversation_id=conversation_id, error=str(e))
                break

    async def health_check(self) -> dict[str, Any]:
        return {
            "channel": self.channel_id,
            "connected_conversations": len(self._connections),
            "queued_conversations": len(self._offline_queues),
            "total_queued_messages": sum(len(q) for q in self._offline_queues.values()),
        }
