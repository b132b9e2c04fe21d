"""
Keyword Recognizer — fast intent classification without an LLM.

Each intent has a list of patterns matched on word boundaries against
the lower-cased text. Confidence grows with the number of matching
patterns; ties go to the intent listed first, so "cancel the new issue"
is a Cancel and not a CreateIssue. Bare command words ("stop", "help",
"options") only count when they make up the whole message.

Entities are only extracted for CreateIssue:
  repo_name  "... in the niles repo" / "... repo niles"
  title      the first quoted phrase
"""
from __future__ import annotations

import re
import structlog
from typing import Any

from models.schemas import Intent, RecognizerResult
from recognizer.base import Recognizer

logger = structlog.get_logger()

INTENT_PATTERNS: dict[str, list[str]] = {
    Intent.CANCEL.value: [r"cancel\s+(it|that|this|the|my|everything)", r"never\s*mind", r"forget it"],
    Intent.HELP.value: [r"help me", r"what can you do", r"how does this work"],
    Intent.CREATE_ISSUE.value: [
        r"(create|open|file|raise|log|report|submit|new)\b.*\b(issue|bug|ticket)",
        r"(issue|bug|ticket)\b.*\b(create|open|file|raise|log|report)",
    ],
    Intent.GREETING.value: [r"hello", r"hi", r"hey", r"hiya", r"greetings",
                            r"good (morning|afternoon|evening)"],
}

# Bare command words count only as the whole message, so an answer
# like "stop button broken" still reaches the pending prompt
COMMAND_WORDS: dict[str, set[str]] = {
    Intent.CANCEL.value: {"cancel", "stop", "quit", "abort", "exit"},
    Intent.HELP.value: {"help", "commands", "options", "menu"},
}

_COMPILED = {
    intent: [re.compile(rf"\b{p}\b") for p in patterns]
    for intent, patterns in INTENT_PATTERNS.items()
}

_REPO_PATTERNS = [
    re.compile(r"\b(?:in|for|on|to)\s+(?:the\s+)?([\w.\-]+(?:/[\w.\-]+)?)\s+repo(?:sitory)?\b", re.IGNORECASE),
    re.compile(r"\brepo(?:sitory)?\s*[:=]?\s+([\w.\-]+(?:/[\w.\-]+)?)", re.IGNORECASE),
]
_TITLE_PATTERN = re.compile(r"[\"“]([^\"”]+)[\"”]")
_POLITE_PREFIX = re.compile(r"^(please|pls|ok|okay)\s+")


def classify_intent(text: str) -> dict[str, float]:
    """Score every intent with at least one matching pattern."""
    lowered = text.lower().strip()
    command = _POLITE_PREFIX.sub("", re.sub(r"[^\w\s]", "", lowered).strip())
    scores: dict[str, float] = {}
    for intent, patterns in _COMPILED.items():
        matches = sum(1 for p in patterns if p.search(lowered))
        if command in COMMAND_WORDS.get(intent, ()):
            matches += 1
        if matches:
            scores[intent] = min(1.0, 0.6 + 0.2 * (matches - 1))
    return scores


def extract_entities(text: str) -> dict[str, Any]:
    entities: dict[str, Any] = {}

    for pattern in _REPO_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).lower() not in ("the", "a", "an", "my"):
            entities["repo_name"] = match.group(1)
            break

    title = _TITLE_PATTERN.search(text)
    if title and title.group(1).strip():
        entities["title"] = title.group(1).strip()

    return entities


class KeywordRecognizer(Recognizer):

    async def recognize(self, text: str) -> RecognizerResult:
        text = text or ""
        scores = classify_intent(text)
        if not scores:
            scores = {Intent.NONE.value: 1.0}

        # First-listed intent wins ties
        top = max(scores, key=scores.get)
        entities = extract_entities(text) if top == Intent.CREATE_ISSUE.value else {}

        logger.debug("intent_classified", intent=top, score=scores[top], entities=list(entities))
        return RecognizerResult(text=text, intents=scores, entities=entities)
