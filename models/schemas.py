"""
Core data models for the Niles assistant.
These are the universal types shared across all modules.
"""
from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class ActivityType(str, Enum):
    MESSAGE = "message"
    CONVERSATION_UPDATE = "conversationUpdate"
    EVENT = "event"


class Intent(str, Enum):
    GREETING = "Greeting"
    CREATE_ISSUE = "CreateIssue"
    CANCEL = "Cancel"
    HELP = "Help"
    NONE = "None"


# ──────────────────────────────────────────────────────────────
#  Accounts & References
# ──────────────────────────────────────────────────────────────

class ChannelAccount(BaseModel):
    """A participant in a conversation (user or bot)."""
    id: str
    name: str = ""


class ConversationAccount(BaseModel):
    id: str
    name: str = ""
    is_group: bool = False


class ConversationReference(BaseModel):
    """Everything needed to resume a stored conversation outside of a turn."""
    activity_id: str = ""
    user: Optional[ChannelAccount] = None
    bot: ChannelAccount
    conversation: ConversationAccount
    channel_id: str = "chat"
    service_url: str = ""

    @property
    def conversation_key(self) -> str:
        """Conversation id fragment before the channel's '|' suffix."""
        return self.conversation.id.split("|")[0]


# ──────────────────────────────────────────────────────────────
#  Activity: one inbound or outbound event
# ──────────────────────────────────────────────────────────────

class SuggestedAction(BaseModel):
    title: str
    value: str = ""


class Activity(BaseModel):
    """
    A single event on a channel: a message, a membership change or a
    synthesized proactive event. Inbound activities live only for the
    duration of one turn.
    """
    type: ActivityType = ActivityType.MESSAGE
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    channel_id: str = "chat"
    service_url: str = ""
    sender: ChannelAccount
    recipient: ChannelAccount
    conversation: ConversationAccount
    text: str = ""
    members_added: list[ChannelAccount] = []
    entities: list[dict[str, Any]] = []           # mention entities
    suggested_actions: list[SuggestedAction] = []
    reply_to_id: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)

    def conversation_reference(self) -> ConversationReference:
        return ConversationReference(
            activity_id=self.id,
            user=self.sender,
            bot=self.recipient,
            conversation=self.conversation,
            channel_id=self.channel_id,
            service_url=self.service_url,
        )

    def create_reply(self, text: str = "") -> Activity:
        return Activity(
            type=ActivityType.MESSAGE,
            channel_id=self.channel_id,
            service_url=self.service_url,
            sender=self.recipient,
            recipient=self.sender,
            conversation=self.conversation,
            text=text,
            reply_to_id=self.id,
        )

    def remove_recipient_mention(self) -> str:
        """Strip mentions of the bot from the text so the recognizer sees only the request."""
        text = self.text or ""
        for entity in self.entities:
            if entity.get("type") != "mention":
                continue
            mentioned = entity.get("mentioned") or {}
            if mentioned.get("id") != self.recipient.id:
                continue
            mention_text = entity.get("text") or ""
            if mention_text:
                text = text.replace(mention_text, "")
        if self.recipient.name:
            text = re.sub(rf"<at>\s*{re.escape(self.recipient.name)}\s*</at>", "", text)
        self.text = text.strip()
        return self.text

    @classmethod
    def from_reference(cls, ref: ConversationReference) -> Activity:
        """Synthesize an event activity bound to a stored conversation."""
        return cls(
            type=ActivityType.EVENT,
            channel_id=ref.channel_id,
            service_url=ref.service_url,
            sender=ref.user or ChannelAccount(id="", name=""),
            recipient=ref.bot,
            conversation=ref.conversation,
            reply_to_id=ref.activity_id,
        )


# ──────────────────────────────────────────────────────────────
#  Recognition
# ──────────────────────────────────────────────────────────────

class RecognizerResult(BaseModel):
    text: str = ""
    intents: dict[str, float] = {}
    entities: dict[str, Any] = {}

    def top_intent(self, default: str = Intent.NONE.value, min_score: float = 0.0) -> tuple[str, float]:
        if not self.intents:
            return default, 0.0
        name = max(self.intents, key=self.intents.get)
        score = self.intents[name]
        if score < min_score:
            return default, score
        return name, score


# ──────────────────────────────────────────────────────────────
#  Dialog State: persisted per conversation
# ──────────────────────────────────────────────────────────────

class DialogFrame(BaseModel):
    """One running dialog on the stack."""
    dialog_id: str
    step_cursor: int = 0                          # index of the next step to run
    options: dict[str, Any] = {}
    values: dict[str, Any] = {}
    prompt: Optional[str] = None                  # last prompt sent, for reprompt
    prompt_actions: list[SuggestedAction] = []


class DialogState(BaseModel):
    stack: list[DialogFrame] = []


# ──────────────────────────────────────────────────────────────
#  Issue collection: persisted per user
# ──────────────────────────────────────────────────────────────

class IssueCollectionState(BaseModel):
    repo_name: str = ""
    title: str = ""
    body: str = ""


class IssuePayload(BaseModel):
    """Body posted to the external issue service."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    issue: str


# ──────────────────────────────────────────────────────────────
#  Job / Channel log records
# ──────────────────────────────────────────────────────────────

class LogRecord(BaseModel):
    id: str
    created_at: datetime = Field(default_factory=_utcnow)
    conversation: ConversationReference
    completed: bool = False
    completed_at: Optional[datetime] = None


class JobRecord(LogRecord):
    """An outstanding asynchronous task started from a conversation."""


class ChannelRecord(LogRecord):
    """A conversation that follows broadcast notifications."""
    last_notified_at: Optional[datetime] = None
    notification_count: int = 0
