"""
Interrupt Handler — Decides whether a message bypasses the active dialog.

Checked once per message turn, before the dialog continues. First match
wins and ends the turn:

  1. Cancel intent          clear the dialog stack and the issue being collected
  2. Help intent            show help, then repeat the pending prompt
  3. Trusted sender         treat the text as a notification and broadcast it
"""
from __future__ import annotations

import structlog

from context.state import StatePropertyAccessor
from core import messages
from dialogs.engine import DialogContext
from models.schemas import Intent
from notifications.notifier import ProactiveNotifier

logger = structlog.get_logger()


class InterruptHandler:

    def __init__(
        self,
        notifier: ProactiveNotifier,
        issue_state: StatePropertyAccessor,
        trusted_senders: list[str] = None,
    ):
        if notifier is None:
            raise ValueError("InterruptHandler requires a notifier")
        if issue_state is None:
            raise ValueError("InterruptHandler requires an issue state accessor")
        self.notifier = notifier
        self.issue_state = issue_state
        if trusted_senders is None:
            trusted_senders = ["probot"]
        self.trusted_senders = {s.lower() for s in trusted_senders}

    def is_trusted(self, sender_id: str) -> bool:
        return bool(sender_id) and sender_id.lower() in self.trusted_senders

    async def handle(self, dc: DialogContext, top_intent: str) -> bool:
        """Returns True when the turn was interrupted."""
        turn = dc.turn

        if top_intent == Intent.CANCEL.value:
            if dc.active_dialog is not None:
                await dc.cancel_all_dialogs()
                await self.issue_state.delete(turn)
                await turn.send_activity(messages.CANCELLED)
            else:
                await turn.send_activity(messages.NOTHING_TO_CANCEL)
            logger.info("turn_interrupted", reason="cancel", conversation_id=turn.activity.conversation.id)
            return True

        if top_intent == Intent.HELP.value:
            await messages.send_help(turn)
            if dc.active_dialog is not None:
                await dc.reprompt_dialog()
            logger.info("turn_interrupted", reason="help", conversation_id=turn.activity.conversation.id)
            return True

        sender_id = turn.activity.sender.id
        if self.is_trusted(sender_id):
            await turn.send_activity(f"Thanks for the update {sender_id}")
            report = await self.notifier.notify_all(turn.activity.text)
            logger.info("turn_interrupted", reason="trusted_sender", sender_id=sender_id,
                        delivered=len(report.delivered), failed=len(report.failed))
            return True

        return False
