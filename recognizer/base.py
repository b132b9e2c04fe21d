"""
Recognizer interface — text in, scored intents and entities out.

Intents the bot routes on: Greeting, CreateIssue, Cancel, Help, None.
Entities are optional; the issue flow uses `repo_name` and `title`
to pre-fill its fields.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from models.schemas import Intent, RecognizerResult

INTENTS = [i.value for i in Intent]


class Recognizer(ABC):

    @abstractmethod
    async def recognize(self, text: str) -> RecognizerResult:
        ...
