"""
IssueBot — The turn dispatcher.

Architecture:
  Transport → process_activity(activity, bot.on_turn)

  message:
    strip self-mention → listing command? render and stop
    → recognize → InterruptHandler (stop if interrupted)
    → continue the active dialog
    → nothing sent yet? route on the dialog status:
        EMPTY      route by intent (greeting / start issue flow / fallback + help)
        WAITING    nothing, the prompt already went out
        COMPLETE   end the dialog
        otherwise  cancel the stack

  conversationUpdate:
    welcome every added member except the bot; when the bot itself was
    added, register the conversation for broadcast notifications

Conversation and user state are saved exactly once at the end of every
turn, including interrupted and failed ones.
"""
from __future__ import annotations

import structlog
from typing import Awaitable, Callable

from channels.base import TurnContext
from context.state import ConversationState, UserState
from core import messages
from core.interrupts import InterruptHandler
from dialogs.create_issue import DIALOG_ID as CREATE_ISSUE_DIALOG
from dialogs.create_issue import CreateIssueDialog
from dialogs.engine import DialogContext, DialogSet, DialogTurnStatus
from models.schemas import ActivityType, DialogState, Intent, IssueCollectionState
from notifications.jobs import JobService
from notifications.notifier import ProactiveNotifier
from recognizer.base import Recognizer

logger = structlog.get_logger()


class IssueBot:
    """Routes each turn through interrupts, the dialog stack and intent fallbacks."""

    def __init__(
        self,
        *,
        conversation_state: ConversationState,
        user_state: UserState,
        recognizer: Recognizer,
        job_service: JobService,
        notifier: ProactiveNotifier,
        issue_service,
        trusted_senders: list[str] = None,
        min_score: float = 0.0,
    ):
        for name, value in (
            ("conversation_state", conversation_state),
            ("user_state", user_state),
            ("recognizer", recognizer),
            ("job_service", job_service),
            ("notifier", notifier),
            ("issue_service", issue_service),
        ):
            if value is None:
                raise ValueError(f"IssueBot requires {name}")

        self.conversation_state = conversation_state
        self.user_state = user_state
        self.recognizer = recognizer
        self.job_service = job_service
        self.notifier = notifier
        self.min_score = min_score

        self.dialog_state = conversation_state.create_property("DialogState", DialogState)
        self.issue_state = user_state.create_property("IssueCollectionState", IssueCollectionState)

        self.dialogs = DialogSet(self.dialog_state)
        self.dialogs.add(CreateIssueDialog(self.issue_state, job_service, issue_service))

        self.interrupts = InterruptHandler(notifier, self.issue_state, trusted_senders)

        self._commands: dict[str, Callable[[TurnContext], Awaitable[None]]] = {
            "show": job_service.list_jobs,
            "show jobs": job_service.list_jobs,
            "show channels": notifier.list_channels,
        }

    async def on_turn(self, turn: TurnContext) -> None:
        activity = turn.activity
        try:
            if activity.type == ActivityType.MESSAGE:
                await self._on_message(turn)
            elif activity.type == ActivityType.CONVERSATION_UPDATE:
                await self._on_members_added(turn)
            else:
                logger.info("activity_ignored", activity_type=activity.type.value,
                            conversation_id=activity.conversation.id)
        finally:
            await self._drop_empty_dialog_state(turn)
            await self.conversation_state.save_changes(turn)
            await self.user_state.save_changes(turn)

    # ── Message turns ─────────────────────────────────────────

    async def _on_message(self, turn: TurnContext) -> None:
        activity = turn.activity
        text = activity.remove_recipient_mention()

        command = self._commands.get(text.strip().lower())
        if command is not None:
            await command(turn)
            return

        result = await self.recognizer.recognize(text)
        top_intent, score = result.top_intent(min_score=self.min_score)
        logger.info("message_received", conversation_id=activity.conversation.id,
                    sender_id=activity.sender.id, intent=top_intent, score=score)

        dc = await self.dialogs.create_context(turn)
        if await self.interrupts.handle(dc, top_intent):
            return

        dialog_result = await dc.continue_dialog()
        if turn.responded:
            return

        status = dialog_result.status
        if status == DialogTurnStatus.EMPTY:
            await self._route_intent(dc, top_intent, result.entities)
        elif status == DialogTurnStatus.WAITING:
            pass
        elif status == DialogTurnStatus.COMPLETE:
            await dc.end_dialog()
        else:
            await dc.cancel_all_dialogs()

    async def _route_intent(self, dc: DialogContext, top_intent: str, entities: dict) -> None:
        if top_intent == Intent.GREETING.value:
            await dc.turn.send_activity(messages.GREETING)
        elif top_intent == Intent.CREATE_ISSUE.value:
            options = {k: v for k, v in entities.items() if k in ("repo_name", "title")}
            await dc.push_dialog(CREATE_ISSUE_DIALOG, options)
        else:
            await dc.turn.send_activity(messages.FALLBACK)
            await messages.send_help(dc.turn)

    # ── Membership changes ────────────────────────────────────

    async def _on_members_added(self, turn: TurnContext) -> None:
        activity = turn.activity
        for member in activity.members_added:
            if member.id != activity.recipient.id:
                await turn.send_activity(messages.WELCOME)
                logger.info("member_welcomed", member_id=member.id, conversation_id=activity.conversation.id)
            else:
                await turn.send_activity(messages.BOT_ADDED)
                await self.notifier.register(activity.conversation_reference(), turn)

    async def _drop_empty_dialog_state(self, turn: TurnContext) -> None:
        if not turn.activity.conversation.id:
            return
        state = await self.dialog_state.get(turn)
        if state is not None and not state.stack:
            await self.dialog_state.delete(turn)
