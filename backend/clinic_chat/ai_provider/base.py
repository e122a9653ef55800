"""AIProvider abstract interface for LLM integrations.

Every provider turns one (system, prompt, schema) request into the model's
raw response text. Parsing and validation belong to the caller.

Usage:
    from clinic_chat.ai_provider import GeminiProvider

    provider = GeminiProvider(api_key="...")
    raw = provider.generate_structured(system, prompt, RESPONSE_SCHEMA)
"""
from abc import ABC, abstractmethod
from typing import Any, Dict


class AIProvider(ABC):
    """Abstract base class for AI provider implementations.

    Gemini, OpenAI and Claude Direct implement this interface so the
    summarizer can treat them interchangeably.
    """

    name: str = "unknown"

    @abstractmethod
    def generate_structured(
        self,
        system: str,
        prompt: str,
        schema: Dict[str, Any],
        max_tokens: int = 2048,
    ) -> str:
        """Call the model and return its raw response text.

        The model is instructed to answer with a single JSON document
        conforming to ``schema``. Providers that support constrained
        decoding pass the schema through; the caller still validates the
        result, since no provider guarantees conformance.

        Args:
            system:     System-role instruction.
            prompt:     The user-turn prompt.
            schema:     JSON Schema of the expected response object.
            max_tokens: Maximum tokens in the response.

        Returns:
            str: The model's response text (possibly empty).

        Raises:
            Exception: If the API call fails.
        """
        pass
