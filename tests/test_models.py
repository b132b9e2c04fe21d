"""Tests for the shared data models."""
import pytest

from models.schemas import (
    Activity, ActivityType, ChannelAccount, ConversationAccount,
    ConversationReference, IssuePayload, RecognizerResult,
)

from conftest import BOT, make_activity


class TestActivity:
    def test_create_reply_swaps_parties(self):
        activity = make_activity("hi")
        reply = activity.create_reply("hello")
        assert reply.sender.id == "bot"
        assert reply.recipient.id == "user-1"
        assert reply.conversation.id == "conv-1"
        assert reply.reply_to_id == activity.id
        assert reply.type == ActivityType.MESSAGE

    def test_conversation_reference(self):
        ref = make_activity("hi", conversation_id="19:abc|thread").conversation_reference()
        assert ref.user.id == "user-1"
        assert ref.bot.id == "bot"
        assert ref.conversation.id == "19:abc|thread"
        assert ref.conversation_key == "19:abc"

    def test_from_reference_builds_event(self):
        ref = make_activity("hi").conversation_reference()
        activity = Activity.from_reference(ref)
        assert activity.type == ActivityType.EVENT
        assert activity.conversation.id == "conv-1"
        assert activity.recipient.id == "bot"
        assert activity.sender.id == "user-1"

    def test_remove_mention_entity(self):
        activity = make_activity(
            "<at>Niles</at> create an issue",
            entities=[{"type": "mention", "text": "<at>Niles</at>", "mentioned": {"id": "bot"}}],
        )
        assert activity.remove_recipient_mention() == "create an issue"
        assert activity.text == "create an issue"

    def test_mention_of_someone_else_is_kept(self):
        activity = make_activity(
            "ask @sam please",
            entities=[{"type": "mention", "text": "@sam", "mentioned": {"id": "sam"}}],
        )
        assert activity.remove_recipient_mention() == "ask @sam please"

    def test_remove_at_tag_without_entities(self):
        activity = make_activity("<at> Niles </at> help")
        assert activity.remove_recipient_mention() == "help"


class TestRecognizerResult:
    def test_top_intent(self):
        result = RecognizerResult(intents={"Greeting": 0.4, "Help": 0.9})
        assert result.top_intent() == ("Help", 0.9)

    def test_empty_defaults_to_none(self):
        assert RecognizerResult().top_intent() == ("None", 0.0)

    def test_below_min_score_uses_default(self):
        result = RecognizerResult(intents={"Help": 0.3})
        assert result.top_intent(min_score=0.5) == ("None", 0.3)


class TestIssueModels:
    def test_payload_serializes_by_alias(self):
        payload = IssuePayload(job_id="job_1", issue="Fix login")
        assert payload.model_dump(by_alias=True) == {"jobId": "job_1", "issue": "Fix login"}

    def test_payload_accepts_alias(self):
        assert IssuePayload(jobId="job_2", issue="x").job_id == "job_2"

    def test_reference_key_without_suffix(self):
        ref = ConversationReference(bot=BOT, conversation=ConversationAccount(id="plain"))
        assert ref.conversation_key == "plain"
