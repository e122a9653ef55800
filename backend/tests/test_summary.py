"""Tests for the conversation summarizer and its endpoints."""
import json
import time
from unittest.mock import MagicMock

import pytest

from clinic_chat.ai_provider import ProviderNotAvailableError
from clinic_chat.chat.schemas import Message
from clinic_chat.config import ClinicChatConfig, StoreSettings, SummarySettings
from clinic_chat.summary.prompts import (
    IMAGE_PLACEHOLDER,
    RESPONSE_SCHEMA,
    SYSTEM_INSTRUCTION,
    format_line,
    get_summary_prompt,
)
from clinic_chat.summary.schemas import SummaryResponse
from clinic_chat.summary.summarizer import (
    ERROR_ACTION_ITEMS,
    ERROR_SUMMARY,
    INSUFFICIENT_DATA_RESPONSE,
    ConversationSummarizer,
    SummaryFailure,
    build_error_report,
    parse_error_cause,
)


def make_message(i, text=None, sender="alice", name="Alice", important=False, image_url=None):
    return Message(
        id=f"m{i}",
        senderId=sender,
        senderName=name,
        text=f"message-{i:03d}" if text is None else text,
        imageUrl=image_url,
        timestamp=1_700_000_000_000 + i,
        isImportant=important,
        readBy=[sender],
    )


def make_messages(count):
    return [make_message(i) for i in range(count)]


def summarizer_for(provider, **summary_settings):
    config = ClinicChatConfig(
        store=StoreSettings(db_path=":memory:"),
        summary=SummarySettings(**summary_settings),
    )
    return ConversationSummarizer(config, provider_factory=lambda cfg: provider)


def assert_error_report(result, cause):
    assert isinstance(result, SummaryResponse)
    assert result.summary == ERROR_SUMMARY
    assert result.keyPoints[0].startswith(f"error cause: {cause.value}")
    assert result.actionItems == ERROR_ACTION_ITEMS
    assert parse_error_cause(result) == cause


class SleepyProvider:
    name = "sleepy"
    model = "sleepy-model"

    def generate_structured(self, system, prompt, schema, max_tokens=2048):
        time.sleep(0.5)
        return "{}"


class TestPrompt:
    """Transcript rendering."""

    def test_format_line(self):
        assert format_line(make_message(1, text="hello")) == "Alice: hello"

    def test_important_tag(self):
        line = format_line(make_message(1, text="明日の予約確認", important=True))
        assert line == "Alice: 明日の予約確認 [IMPORTANT]"

    def test_image_only_message(self):
        message = make_message(1, text="", image_url="data:image/jpeg;base64,AAAA")
        assert format_line(message) == f"Alice: {IMAGE_PLACEHOLDER}"

    def test_prompt_carries_language_and_transcript(self):
        prompt = get_summary_prompt(make_messages(2), language="English")
        assert "Write all output in English." in prompt
        assert "Alice: message-000\nAlice: message-001" in prompt


class TestGuard:
    """Fewer than three messages never reach a provider."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1, 2])
    async def test_insufficient_messages(self, config, count):
        factory = MagicMock()
        summarizer = ConversationSummarizer(config, provider_factory=factory)

        result = await summarizer.summarize(make_messages(count))

        assert result == INSUFFICIENT_DATA_RESPONSE
        assert result.keyPoints == ["insufficient message count"]
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_returned_copy_is_independent(self, config):
        summarizer = ConversationSummarizer(config, provider_factory=MagicMock())

        result = await summarizer.summarize([])
        result.keyPoints.append("mutated")

        assert INSUFFICIENT_DATA_RESPONSE.keyPoints == ["insufficient message count"]

    @pytest.mark.asyncio
    async def test_guard_runs_before_disabled_check(self, fake_provider):
        summarizer = summarizer_for(fake_provider, enabled=False)
        result = await summarizer.summarize(make_messages(1))
        assert result == INSUFFICIENT_DATA_RESPONSE


class TestSuccess:
    """Well-formed provider output."""

    @pytest.mark.asyncio
    async def test_summary_is_returned(self, fake_provider):
        summarizer = summarizer_for(fake_provider)

        result = await summarizer.summarize(make_messages(3))

        assert result.summary == "Reception confirmed tomorrow's appointments."
        assert result.keyPoints == ["Tomorrow's bookings are confirmed"]
        assert result.actionItems == ["Call the 10:00 patient"]
        assert parse_error_cause(result) is None

        call = fake_provider.calls[0]
        assert call["system"] == SYSTEM_INSTRUCTION
        assert call["schema"] == RESPONSE_SCHEMA
        assert "Write all output in Japanese." in call["prompt"]

    @pytest.mark.asyncio
    async def test_only_the_newest_fifty_are_sent(self, fake_provider):
        summarizer = summarizer_for(fake_provider)

        await summarizer.summarize(make_messages(80))

        prompt = fake_provider.calls[0]["prompt"]
        assert "message-029" not in prompt
        assert "message-030" in prompt
        assert "message-079" in prompt
        assert prompt.index("message-030") < prompt.index("message-079")

    @pytest.mark.asyncio
    async def test_code_fenced_output_is_accepted(self, fake_provider):
        fake_provider.response = "```json\n" + json.dumps({
            "summary": "s", "keyPoints": [], "actionItems": [],
        }) + "\n```"
        result = await summarizer_for(fake_provider).summarize(make_messages(3))
        assert result == SummaryResponse(summary="s", keyPoints=[], actionItems=[])

    @pytest.mark.asyncio
    async def test_provider_is_resolved_once(self, config, fake_provider):
        factory = MagicMock(return_value=fake_provider)
        summarizer = ConversationSummarizer(config, provider_factory=factory)

        await summarizer.summarize(make_messages(3))
        await summarizer.summarize(make_messages(4))

        factory.assert_called_once_with(config)
        assert len(fake_provider.calls) == 2


class TestFailureContainment:
    """Every failure becomes an error report carrying its cause."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self, config):
        # Real resolution with no API keys configured
        result = await ConversationSummarizer(config).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.MISSING_CREDENTIALS)
        assert "gemini" in result.keyPoints[0]

    @pytest.mark.asyncio
    async def test_provider_unavailable_from_factory(self, config):
        def factory(cfg):
            raise ProviderNotAvailableError("no key")

        result = await ConversationSummarizer(config, provider_factory=factory).summarize(make_messages(3))

        assert_error_report(result, SummaryFailure.MISSING_CREDENTIALS)
        assert result.keyPoints == ["error cause: missing_credentials: no key"]

    @pytest.mark.asyncio
    async def test_disabled(self, fake_provider):
        result = await summarizer_for(fake_provider, enabled=False).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.DISABLED)
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_timeout(self):
        summarizer = summarizer_for(SleepyProvider(), timeout_seconds=0.05)
        result = await summarizer.summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.TIMEOUT)

    @pytest.mark.asyncio
    async def test_provider_call_error(self, fake_provider):
        fake_provider.error = ConnectionError("connection reset")
        result = await summarizer_for(fake_provider).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.PROVIDER_ERROR)
        assert "connection reset" in result.keyPoints[0]

    @pytest.mark.asyncio
    async def test_provider_setup_error(self, config):
        def factory(cfg):
            raise RuntimeError("bad client")

        result = await ConversationSummarizer(config, provider_factory=factory).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.PROVIDER_ERROR)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["", "   ", "```json\n```", None])
    async def test_empty_response(self, fake_provider, raw):
        fake_provider.response = raw
        result = await summarizer_for(fake_provider).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.EMPTY_RESPONSE)

    @pytest.mark.asyncio
    async def test_malformed_output(self, fake_provider):
        fake_provider.response = "Here is your summary: everything is fine."
        result = await summarizer_for(fake_provider).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.MALFORMED_OUTPUT)

    @pytest.mark.asyncio
    async def test_deeply_nested_output(self, fake_provider):
        fake_provider.response = "[" * 100_000 + "]" * 100_000
        result = await summarizer_for(fake_provider).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.MALFORMED_OUTPUT)

    @pytest.mark.asyncio
    async def test_non_text_response(self, fake_provider):
        fake_provider.response = 123
        result = await summarizer_for(fake_provider).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.PROVIDER_ERROR)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"summary": "s", "keyPoints": []},
        {"summary": "s", "keyPoints": "not a list", "actionItems": []},
        {"summary": "s", "keyPoints": [], "actionItems": [], "extra": 1},
        ["summary", "keyPoints", "actionItems"],
    ])
    async def test_schema_violation(self, fake_provider, payload):
        fake_provider.response = json.dumps(payload)
        result = await summarizer_for(fake_provider).summarize(make_messages(3))
        assert_error_report(result, SummaryFailure.SCHEMA_VIOLATION)


class TestErrorReports:
    """build_error_report / parse_error_cause."""

    def test_report_shape(self):
        report = build_error_report(SummaryFailure.TIMEOUT, "no response within 60s")
        assert report.keyPoints == ["error cause: timeout: no response within 60s"]
        assert report.actionItems == ERROR_ACTION_ITEMS

    def test_report_without_detail(self):
        report = build_error_report(SummaryFailure.DISABLED)
        assert report.keyPoints == ["error cause: disabled"]
        assert parse_error_cause(report) == SummaryFailure.DISABLED

    def test_real_summary_has_no_cause(self):
        assert parse_error_cause(INSUFFICIENT_DATA_RESPONSE) is None
        report = SummaryResponse(summary=ERROR_SUMMARY, keyPoints=["error cause: unheard_of"], actionItems=[])
        assert parse_error_cause(report) is None

    def test_action_items_are_not_shared(self):
        report = build_error_report(SummaryFailure.TIMEOUT)
        report.actionItems.clear()
        assert len(ERROR_ACTION_ITEMS) == 3


class TestSummaryEndpoints:
    """Tests for POST /rooms/{room_id}/summary and POST /summary."""

    def test_room_summary(self, api_client, services, fake_provider, alice, bob):
        room = services.rooms.create_room("受付連絡", alice.id)
        services.rooms.join_room(room.code, bob.id)
        for text in ["明日の予約確認", "10時の患者さんに電話します", "了解です"]:
            services.messages.send(room.id, alice, text=text)

        resp = api_client.post(f"/rooms/{room.id}/summary", params={"userId": "alice"})

        assert resp.status_code == 200
        assert resp.json() == {
            "summary": "Reception confirmed tomorrow's appointments.",
            "keyPoints": ["Tomorrow's bookings are confirmed"],
            "actionItems": ["Call the 10:00 patient"],
        }
        assert "Alice: 明日の予約確認" in fake_provider.calls[0]["prompt"]

    def test_room_summary_guard(self, api_client, services, fake_provider, alice):
        room = services.rooms.create_room("Lab", alice.id)

        resp = api_client.post(f"/rooms/{room.id}/summary", params={"userId": "alice"})

        assert resp.status_code == 200
        assert resp.json()["keyPoints"] == ["insufficient message count"]
        assert fake_provider.calls == []

    def test_unknown_room(self, api_client, alice):
        assert api_client.post("/rooms/missing/summary", params={"userId": "alice"}).status_code == 404

    def test_non_member_cannot_summarize(self, api_client, services, fake_provider, alice, carol):
        room = services.rooms.create_room("Lab", alice.id)
        for text in ["one", "two", "three"]:
            services.messages.send(room.id, alice, text=text)

        resp = api_client.post(f"/rooms/{room.id}/summary", params={"userId": "carol"})

        assert resp.status_code == 403
        assert fake_provider.calls == []

    def test_adhoc_summary(self, api_client, fake_provider):
        body = {"messages": [m.model_dump(exclude_none=True) for m in make_messages(3)]}

        resp = api_client.post("/summary", json=body)

        assert resp.status_code == 200
        assert resp.json()["summary"] == "Reception confirmed tomorrow's appointments."

    def test_adhoc_failure_is_still_200(self, api_client, fake_provider):
        fake_provider.response = "not json"
        body = {"messages": [m.model_dump(exclude_none=True) for m in make_messages(3)]}

        resp = api_client.post("/summary", json=body)

        assert resp.status_code == 200
        assert resp.json()["keyPoints"][0].startswith("error cause: malformed_output")
