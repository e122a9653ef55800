"""Provider resolution for the conversation summarizer.

Picks the provider named by ``summary.provider`` and builds it from the
matching secret. Unlike a health-checked pool, exactly one provider is
configured at a time; a missing key is reported, not worked around.

Usage:
    provider = resolve_provider(config)
"""
import logging
from enum import Enum

from ..config import ClinicChatConfig
from .base import AIProvider
from .claude_direct import ClaudeDirectProvider
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider
from .wrapper import ProviderNotAvailableError

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """Supported AI provider types."""
    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


def resolve_provider(config: ClinicChatConfig) -> AIProvider:
    """Create the configured provider.

    Raises:
        ProviderNotAvailableError: If the summary feature is disabled or
            the selected provider has no API key.
    """
    summary = config.summary
    if not summary.enabled:
        logger.info("Summary is disabled, skipping provider resolution")
        raise ProviderNotAvailableError("AI summarization is not enabled in configuration.")

    provider_type = ProviderType(summary.provider)
    secrets = config.secrets

    if provider_type == ProviderType.GEMINI:
        api_key = secrets.gemini.api_key
        factory = lambda: GeminiProvider(api_key=api_key, model=summary.model)
    elif provider_type == ProviderType.OPENAI:
        api_key = secrets.openai.api_key
        factory = lambda: OpenAIProvider(api_key=api_key, model=summary.model)
    else:
        api_key = secrets.anthropic.api_key
        factory = lambda: ClaudeDirectProvider(api_key=api_key, model=summary.model)

    if not api_key:
        logger.warning(f"Provider {provider_type.value} skipped (not configured)")
        raise ProviderNotAvailableError(
            f"No API key configured for AI provider '{provider_type.value}'."
        )

    provider = factory()
    logger.info(f"Active summary provider: {provider_type.value} ({provider.model})")
    return provider
