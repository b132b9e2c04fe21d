"""Tests for the keyword and LLM recognizers and the factory."""
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from config.settings import ConfigurationError, RecognizerConfig
from recognizer.factory import create_recognizer
from recognizer.keyword import KeywordRecognizer, classify_intent, extract_entities
from recognizer.llm import LLMRecognizer


class TestKeywordRecognizer:
    @pytest.mark.parametrize("text,intent", [
        ("Hello", "Greeting"),
        ("hey niles", "Greeting"),
        ("good morning", "Greeting"),
        ("Create new issue", "CreateIssue"),
        ("please open a bug for this", "CreateIssue"),
        ("cancel", "Cancel"),
        ("never mind", "Cancel"),
        ("help", "Help"),
        ("what can you do?", "Help"),
        ("Has my build completed", "None"),
        ("", "None"),
    ])
    @pytest.mark.asyncio
    async def test_intents(self, text, intent):
        result = await KeywordRecognizer().recognize(text)
        assert result.top_intent()[0] == intent

    @pytest.mark.asyncio
    async def test_cancel_beats_create_issue(self):
        result = await KeywordRecognizer().recognize("cancel the new issue")
        assert result.top_intent()[0] == "Cancel"

    @pytest.mark.parametrize("text", [
        "stop button broken", "options page crashes", "quit unexpectedly on save",
        "list commands in the README", "help text is misaligned",
    ])
    @pytest.mark.asyncio
    async def test_command_words_inside_answers_are_not_commands(self, text):
        result = await KeywordRecognizer().recognize(text)
        assert result.top_intent()[0] not in ("Cancel", "Help")

    @pytest.mark.parametrize("text,intent", [
        ("Stop!", "Cancel"), ("please cancel", "Cancel"), ("  QUIT ", "Cancel"),
        ("options?", "Help"), ("help me", "Help"),
    ])
    @pytest.mark.asyncio
    async def test_bare_command_words(self, text, intent):
        result = await KeywordRecognizer().recognize(text)
        assert result.top_intent()[0] == intent

    def test_word_boundaries(self):
        assert "Greeting" not in classify_intent("this is it")

    @pytest.mark.asyncio
    async def test_entities_only_for_create_issue(self):
        result = await KeywordRecognizer().recognize('hello "quoted"')
        assert result.entities == {}

        result = await KeywordRecognizer().recognize('create an issue in the niles repo titled "Login fails"')
        assert result.entities == {"repo_name": "niles", "title": "Login fails"}

    def test_repo_forms(self):
        assert extract_entities("file a bug for acme/web repository")["repo_name"] == "acme/web"
        assert extract_entities("open issue repo: infra-tools")["repo_name"] == "infra-tools"
        assert "repo_name" not in extract_entities("open an issue")


class TestLLMRecognizer:
    @pytest.fixture
    def config(self):
        return RecognizerConfig(type="llm", provider="anthropic", api_key="test-key")

    def anthropic_client(self, reply: str):
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=SimpleNamespace(content=[SimpleNamespace(text=reply)])
        )
        return client

    @pytest.mark.asyncio
    async def test_parses_json_reply(self, config):
        client = self.anthropic_client(
            '{"intent": "CreateIssue", "confidence": 0.92, "entities": {"repo_name": "niles"}}'
        )
        result = await LLMRecognizer(config, client=client).recognize("make a ticket in niles")

        assert result.top_intent() == ("CreateIssue", 0.92)
        assert result.entities == {"repo_name": "niles"}
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == config.model
        assert kwargs["messages"] == [{"role": "user", "content": "make a ticket in niles"}]

    @pytest.mark.asyncio
    async def test_fenced_json(self, config):
        client = self.anthropic_client('```json\n{"intent": "Help", "confidence": 1}\n```')
        result = await LLMRecognizer(config, client=client).recognize("??")
        assert result.top_intent()[0] == "Help"

    @pytest.mark.asyncio
    async def test_openai_provider(self):
        config = RecognizerConfig(type="llm", provider="openai", api_key="k", model="gpt-4o-mini")
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"intent": "Greeting"}'))]
        ))
        result = await LLMRecognizer(config, client=client).recognize("yo")

        assert result.top_intent() == ("Greeting", 1.0)
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_falls_back_on_api_error(self, config):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=RuntimeError("rate limited"))
        result = await LLMRecognizer(config, client=client).recognize("cancel")
        assert result.top_intent()[0] == "Cancel"

    @pytest.mark.asyncio
    async def test_falls_back_on_unknown_intent(self, config):
        client = self.anthropic_client('{"intent": "OrderPizza"}')
        result = await LLMRecognizer(config, client=client).recognize("hello")
        assert result.top_intent()[0] == "Greeting"

    @pytest.mark.asyncio
    async def test_falls_back_on_non_json(self, config):
        client = self.anthropic_client("I think they want help")
        result = await LLMRecognizer(config, client=client).recognize("help")
        assert result.top_intent()[0] == "Help"


class TestRecognizerFactory:
    def test_keyword_default(self):
        assert isinstance(create_recognizer(RecognizerConfig()), KeywordRecognizer)

    def test_llm(self):
        recognizer = create_recognizer(RecognizerConfig(type="llm", api_key="k"))
        assert isinstance(recognizer, LLMRecognizer)

    def test_llm_without_key_fails_fast(self):
        with pytest.raises(ConfigurationError):
            create_recognizer(RecognizerConfig(type="llm", api_key=""))

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            create_recognizer(RecognizerConfig(type="llm", provider="cohere", api_key="k"))

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError):
            create_recognizer(RecognizerConfig(type="regex"))
