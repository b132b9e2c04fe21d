"""Shared test fixtures for Niles."""
import pytest
from typing import Any

from models.schemas import (
    Activity, ActivityType, ChannelAccount, ConversationAccount,
)
from channels.base import ChannelError, TransportAdapter, TurnContext
from context.state import ConversationState, UserState
from database.store_memory import InMemoryStorage
from notifications.job_log import ChannelLog, JobLog
from notifications.jobs import JobService
from notifications.notifier import ProactiveNotifier
from recognizer.keyword import KeywordRecognizer
from backend.issue_service import MockIssueService
from core.bot import IssueBot

BOT = ChannelAccount(id="bot", name="Niles")


class RecordingAdapter(TransportAdapter):
    """Transport that records every outbound activity instead of delivering it."""

    channel_id = "test"

    def __init__(self):
        super().__init__(bot_id=BOT.id)
        self.sent: list[Activity] = []
        self.unreachable: set[str] = set()

    async def send(self, turn: TurnContext, activity: Activity) -> dict[str, Any]:
        if activity.conversation.id in self.unreachable:
            raise ChannelError(f"Conversation {activity.conversation.id} is gone", self.channel_id)
        self.sent.append(activity)
        return {"status": "delivered", "message_id": activity.id}

    def texts(self, conversation_id: str = None) -> list[str]:
        return [a.text for a in self.sent
                if conversation_id is None or a.conversation.id == conversation_id]


def make_activity(
    text: str = "",
    conversation_id: str = "conv-1",
    sender_id: str = "user-1",
    activity_type: ActivityType = ActivityType.MESSAGE,
    members_added: list[ChannelAccount] = None,
    entities: list[dict[str, Any]] = None,
) -> Activity:
    return Activity(
        type=activity_type,
        channel_id=RecordingAdapter.channel_id,
        sender=ChannelAccount(id=sender_id, name=sender_id),
        recipient=BOT,
        conversation=ConversationAccount(id=conversation_id),
        text=text,
        members_added=members_added or [],
        entities=entities or [],
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def conversation_state(storage) -> ConversationState:
    return ConversationState(storage)


@pytest.fixture
def user_state(storage) -> UserState:
    return UserState(storage)


@pytest.fixture
def job_log(storage) -> JobLog:
    return JobLog(storage)


@pytest.fixture
def channel_log(storage) -> ChannelLog:
    return ChannelLog(storage)


@pytest.fixture
def job_service(job_log, adapter) -> JobService:
    return JobService(job_log, resume=adapter.continue_conversation)


@pytest.fixture
def notifier(channel_log, adapter) -> ProactiveNotifier:
    return ProactiveNotifier(channel_log, adapter.continue_conversation)


@pytest.fixture
def issue_service() -> MockIssueService:
    return MockIssueService()


@pytest.fixture
def bot(conversation_state, user_state, job_service, notifier, issue_service) -> IssueBot:
    return IssueBot(
        conversation_state=conversation_state,
        user_state=user_state,
        recognizer=KeywordRecognizer(),
        job_service=job_service,
        notifier=notifier,
        issue_service=issue_service,
    )


@pytest.fixture
def say(adapter, bot):
    """Run one message turn through the adapter and return the reply texts."""
    async def _say(text: str, **kwargs) -> list[str]:
        replies = await adapter.process_activity(make_activity(text, **kwargs), bot.on_turn)
        return [r.text for r in replies]
    return _say
