"""Tests for the AI provider module."""
import json
from unittest.mock import MagicMock, patch

import pytest

from clinic_chat.ai_provider import (
    AIProvider,
    ClaudeDirectProvider,
    GeminiProvider,
    OpenAIProvider,
    ProviderNotAvailableError,
    ProviderType,
    resolve_provider,
    strip_markdown_code_block,
)
from clinic_chat.config import ClinicChatConfig, SummarySettings
from clinic_chat.summary.prompts import RESPONSE_SCHEMA

RAW = json.dumps({"summary": "s", "keyPoints": [], "actionItems": []})


def _config(provider="gemini", enabled=True, model=None, **keys):
    config = ClinicChatConfig(summary=SummarySettings(provider=provider, enabled=enabled, model=model))
    for name, key in keys.items():
        getattr(config.secrets, name).api_key = key
    return config


def _gemini_modules(client):
    mock_google = MagicMock()
    mock_genai = MagicMock()
    mock_types = MagicMock()
    mock_google.genai = mock_genai
    mock_genai.types = mock_types
    mock_genai.Client.return_value = client
    return {"google": mock_google, "google.genai": mock_genai, "google.genai.types": mock_types}


class TestStripMarkdownCodeBlock:
    """Tests for strip_markdown_code_block."""

    def test_plain_text_unchanged(self):
        assert strip_markdown_code_block(' {"a": 1} ') == '{"a": 1}'

    def test_json_fence(self):
        assert strip_markdown_code_block('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_markdown_code_block('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_unterminated_fence(self):
        assert strip_markdown_code_block('```json\n{"a": 1}') == '{"a": 1}'


class TestResolveProvider:
    """Tests for resolve_provider."""

    def test_gemini_is_default(self):
        provider = resolve_provider(_config(gemini="g-key"))
        assert isinstance(provider, GeminiProvider)
        assert provider.api_key == "g-key"
        assert provider.model == GeminiProvider.DEFAULT_MODEL

    def test_openai(self):
        provider = resolve_provider(_config("openai", openai="sk-test", model="gpt-4o-mini"))
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4o-mini"

    def test_anthropic(self):
        provider = resolve_provider(_config("anthropic", anthropic="sk-ant"))
        assert isinstance(provider, ClaudeDirectProvider)

    def test_missing_key(self):
        # A key for another provider does not count
        with pytest.raises(ProviderNotAvailableError, match="openai"):
            resolve_provider(_config("openai", gemini="g-key"))

    def test_disabled(self):
        with pytest.raises(ProviderNotAvailableError, match="not enabled"):
            resolve_provider(_config(enabled=False, gemini="g-key"))

    def test_provider_types(self):
        assert {t.value for t in ProviderType} == {"gemini", "openai", "anthropic"}

    def test_all_providers_implement_interface(self):
        for provider in (GeminiProvider("k"), OpenAIProvider("k"), ClaudeDirectProvider("k")):
            assert isinstance(provider, AIProvider)


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    def test_generate_structured(self):
        client = MagicMock()
        client.models.generate_content.return_value = MagicMock(text=f"  {RAW}  ")
        modules = _gemini_modules(client)

        with patch.dict("sys.modules", modules):
            provider = GeminiProvider(api_key="g-key")
            result = provider.generate_structured("system", "prompt", RESPONSE_SCHEMA, max_tokens=512)

        assert result == RAW
        modules["google.genai"].Client.assert_called_once_with(api_key="g-key")
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"] == "prompt"
        modules["google.genai.types"].GenerateContentConfig.assert_called_once_with(
            system_instruction="system",
            response_mime_type="application/json",
            response_schema=RESPONSE_SCHEMA,
            max_output_tokens=512,
        )

    def test_none_text_becomes_empty(self):
        client = MagicMock()
        client.models.generate_content.return_value = MagicMock(text=None)

        with patch.dict("sys.modules", _gemini_modules(client)):
            result = GeminiProvider(api_key="g-key").generate_structured("s", "p", RESPONSE_SCHEMA)

        assert result == ""

    def test_get_client_raises_import_error(self):
        provider = GeminiProvider(api_key="g-key")
        with patch.dict("sys.modules", {"google": None}):
            with pytest.raises(ImportError, match="google-genai package is required"):
                provider._get_client()


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    def test_generate_structured(self):
        mock_openai = MagicMock()
        client = MagicMock()
        mock_openai.OpenAI.return_value = client
        client.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content=RAW))]
        )

        with patch.dict("sys.modules", {"openai": mock_openai}):
            result = OpenAIProvider(api_key="sk-test").generate_structured("system", "prompt", RESPONSE_SCHEMA)

        assert result == RAW
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "prompt"},
        ]
        assert kwargs["response_format"]["type"] == "json_schema"
        assert kwargs["response_format"]["json_schema"]["schema"] == RESPONSE_SCHEMA

    def test_get_client_raises_import_error(self):
        provider = OpenAIProvider(api_key="sk-test")
        with patch.dict("sys.modules", {"openai": None}):
            with pytest.raises(ImportError, match="openai package is required"):
                provider._get_client()


class TestClaudeDirectProvider:
    """Tests for ClaudeDirectProvider."""

    def test_generate_structured_appends_schema(self):
        mock_anthropic = MagicMock()
        client = MagicMock()
        mock_anthropic.Anthropic.return_value = client
        client.messages.create.return_value = MagicMock(content=[MagicMock(text=RAW)])

        with patch.dict("sys.modules", {"anthropic": mock_anthropic}):
            result = ClaudeDirectProvider(api_key="sk-ant").generate_structured("system", "prompt", RESPONSE_SCHEMA)

        assert result == RAW
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"].startswith("system\n\n")
        assert '"keyPoints"' in kwargs["system"]
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    def test_no_content_returns_empty(self):
        mock_anthropic = MagicMock()
        mock_anthropic.Anthropic.return_value.messages.create.return_value = MagicMock(content=[])

        with patch.dict("sys.modules", {"anthropic": mock_anthropic}):
            result = ClaudeDirectProvider(api_key="sk-ant").generate_structured("s", "p", RESPONSE_SCHEMA)

        assert result == ""

