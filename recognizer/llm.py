"""
LLM Recognizer — Intent classification with Claude or OpenAI.

The model is asked for a JSON object with the intent, a confidence and
any issue fields it can see in the message. Anything unusable (client
init failure, API error, non-JSON reply, unknown intent) falls back to
the keyword recognizer, so recognition never fails a turn.
"""
from __future__ import annotations

import json
import structlog
from typing import Any, Optional

from config.settings import RecognizerConfig
from models.schemas import Intent, RecognizerResult
from recognizer.base import INTENTS, Recognizer
from recognizer.keyword import KeywordRecognizer

logger = structlog.get_logger()

SYSTEM_PROMPT = f"""You classify messages sent to a DevOps chat assistant that files issues in code repositories.
Return a JSON object with:
- intent: EXACTLY one of {", ".join(INTENTS)}
- confidence: float 0-1
- entities: object with optional "repo_name" and "title" when the message names them

Use "None" when no other intent fits.
Return ONLY valid JSON, no other text."""


class LLMRecognizer(Recognizer):
    """Supports both Anthropic and OpenAI providers."""

    def __init__(self, config: RecognizerConfig, fallback: Recognizer = None, client: Any = None):
        self.config = config
        self.fallback = fallback or KeywordRecognizer()
        self._client = client

    @property
    def is_openai(self) -> bool:
        return self.config.provider == "openai"

    def _get_client(self):
        if self._client is None:
            try:
                if self.is_openai:
                    from openai import AsyncOpenAI
                    self._client = AsyncOpenAI(api_key=self.config.api_key)
                else:
                    import anthropic
                    self._client = anthropic.AsyncAnthropic(api_key=self.config.api_key)
                logger.info("llm_client_initialized", provider=self.config.provider, model=self.config.model)
            except Exception as e:
                logger.error("llm_client_init_failed", provider=self.config.provider, error=str(e))
                self._client = None
        return self._client

    async def _call_llm(self, text: str) -> str:
        client = self._get_client()
        if not client:
            return ""

        messages = [{"role": "user", "content": text}]
        if self.is_openai:
            response = await client.chat.completions.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=[{"role": "system", "content": SYSTEM_PROMPT}] + messages,
            )
            return response.choices[0].message.content

        response = await client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system=SYSTEM_PROMPT,
            messages=messages,
        )
        return response.content[0].text

    @staticmethod
    def parse(raw: str) -> Optional[dict[str, Any]]:
        """Pull the JSON object out of a model reply, tolerating ``` fences."""
        raw = (raw or "").strip()
        if not raw:
            return None
        if raw.startswith("```"):
            raw = raw.split("```")[1].strip()
            if raw.startswith("json"):
                raw = raw[4:].strip()
        data = json.loads(raw)
        return data if isinstance(data, dict) else None

    async def recognize(self, text: str) -> RecognizerResult:
        text = text or ""
        try:
            data = self.parse(await self._call_llm(text))
        except Exception as e:
            logger.error("intent_detection_failed", provider=self.config.provider, error=str(e))
            data = None

        if not data or data.get("intent") not in INTENTS:
            logger.info("llm_recognizer_fallback", reason="unusable_reply" if data else "no_reply")
            return await self.fallback.recognize(text)

        intent = data["intent"]
        try:
            confidence = float(data.get("confidence", 1.0))
        except (TypeError, ValueError):
            confidence = 1.0

        entities = data.get("entities") or {}
        if not isinstance(entities, dict) or intent != Intent.CREATE_ISSUE.value:
            entities = {}
        entities = {k: v for k, v in entities.items() if k in ("repo_name", "title") and isinstance(v, str) and v}

        return RecognizerResult(text=text, intents={intent: confidence}, entities=entities)
