"""
Proactive Notifier — Broadcasts payloads into stored conversations.

Runs outside any user turn: for every ChannelRecord it resumes that exact
conversation through the transport's `continue_conversation` capability
and delivers "Notification: {payload}". One unreachable conversation
never stops the broadcast; failures are counted and logged.
"""
from __future__ import annotations

import structlog
from dataclasses import dataclass, field

from channels.base import TurnContext
from models.schemas import ChannelRecord, ConversationReference
from notifications.job_log import ChannelLog
from notifications.jobs import ResumeConversation

logger = structlog.get_logger()


@dataclass
class NotificationReport:
    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)   # record id → error

    @property
    def total(self) -> int:
        return len(self.delivered) + len(self.failed)


class ProactiveNotifier:

    def __init__(self, channel_log: ChannelLog, resume: ResumeConversation):
        if channel_log is None:
            raise ValueError("ProactiveNotifier requires a channel log")
        if resume is None:
            raise ValueError("ProactiveNotifier requires a resume capability")
        self.channel_log = channel_log
        self._resume = resume

    async def register(self, reference: ConversationReference, turn: TurnContext = None) -> ChannelRecord:
        record, created = await self.channel_log.upsert(reference)
        if turn is not None:
            await turn.send_activity(
                f"We're saving {reference.conversation.id} for future updates."
            )
        logger.info("channel_registered", record_id=record.id, created=created,
                    conversation_id=reference.conversation.id)
        return record

    async def notify_all(self, payload: str) -> NotificationReport:
        report = NotificationReport()
        text = f"Notification: {payload}"

        async def deliver(turn: TurnContext) -> None:
            await turn.send_activity(text)

        for record in await self.channel_log.list():
            try:
                await self._resume(record.conversation, deliver)
                report.delivered.append(record.id)
            except Exception as e:
                report.failed[record.id] = str(e)
                logger.warning("notification_delivery_failed", record_id=record.id,
                               conversation_id=record.conversation.conversation.id, error=str(e))

        await self.channel_log.record_deliveries(report.delivered)
        logger.info("notification_broadcast", delivered=len(report.delivered), failed=len(report.failed))
        return report

    async def list_channels(self, turn: TurnContext) -> None:
        await turn.send_activity(await self.channel_log.render())
