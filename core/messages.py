"""Canned replies the bot sends outside of a dialog."""
from __future__ import annotations

from channels.base import TurnContext
from models.schemas import SuggestedAction

GREETING = "Hello, this is Niles, your DevOps ChatBot assistant"
FALLBACK = "I didn't understand what you just said to me."
WELCOME = "Welcome! I'm Niles, your DevOps ChatBot assistant. I can open issues and tell you when your jobs finish."
BOT_ADDED = "Thanks for adding Niles. Type anything to get started."
CANCELLED = "Ok. I've cancelled our last activity."
NOTHING_TO_CANCEL = "I don't have anything to cancel."
HELP = "Here's what I can do for you. Pick an option or just tell me what you need."

HELP_ACTIONS = [
    SuggestedAction(title="Create new issue", value="Create new issue"),
    SuggestedAction(title="Has my build completed", value="Has my build completed"),
]


async def send_help(turn: TurnContext) -> None:
    await turn.send_activity(HELP, HELP_ACTIONS)
