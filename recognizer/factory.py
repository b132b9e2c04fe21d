"""
Recognizer Factory — Build the configured recognizer.

Configuration in settings.yaml:
    recognizer:
      type: "keyword"          # "keyword" | "llm"
      provider: "anthropic"    # llm only: "anthropic" | "openai"
      api_key: "${ANTHROPIC_API_KEY:-}"
"""
from __future__ import annotations

import structlog

from config.settings import ConfigurationError, RecognizerConfig
from recognizer.base import Recognizer
from recognizer.keyword import KeywordRecognizer

logger = structlog.get_logger()


def create_recognizer(config: RecognizerConfig = None) -> Recognizer:
    config = config or RecognizerConfig()

    if config.type == "keyword":
        logger.info("recognizer_created", type="keyword")
        return KeywordRecognizer()

    if config.type == "llm":
        if config.provider not in ("anthropic", "openai"):
            raise ConfigurationError(f"Unknown LLM provider '{config.provider}'")
        if not config.api_key:
            raise ConfigurationError("LLM recognizer requires recognizer.api_key")
        from recognizer.llm import LLMRecognizer
        logger.info("recognizer_created", type="llm", provider=config.provider, model=config.model)
        return LLMRecognizer(config)

    raise ConfigurationError(f"Unknown recognizer type '{config.type}'")
