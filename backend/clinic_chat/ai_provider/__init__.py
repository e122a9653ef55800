"""AI Provider module for LLM integrations.

This module provides a unified interface over three text-generation
services: GeminiProvider, OpenAIProvider and ClaudeDirectProvider.

Usage:
    from clinic_chat.ai_provider import resolve_provider

    provider = resolve_provider(config)
    raw = provider.generate_structured(system, prompt, schema)
"""
from .base import AIProvider
from .claude_direct import ClaudeDirectProvider
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider
from .resolver import ProviderType, resolve_provider
from .wrapper import (
    AIProviderError,
    EmptyResponseError,
    JSONParseError,
    ProviderNotAvailableError,
    SchemaViolationError,
    strip_markdown_code_block,
)

__all__ = [
    "AIProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "ClaudeDirectProvider",
    "ProviderType",
    "resolve_provider",
    "AIProviderError",
    "ProviderNotAvailableError",
    "EmptyResponseError",
    "JSONParseError",
    "SchemaViolationError",
    "strip_markdown_code_block",
]
