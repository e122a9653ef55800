"""OpenAI API provider implementation.

This module provides an AIProvider implementation that connects to
OpenAI's API using the official SDK.

Usage:
    provider = OpenAIProvider(api_key="sk-...")
    raw = provider.generate_structured(system, prompt, schema)
"""
import logging
from typing import Any, Dict, Optional

from .base import AIProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """AIProvider implementation using OpenAI's API.

    Attributes:
        api_key: OpenAI API key for authentication.
        model: OpenAI model to use (default: gpt-4o).
        organization: Optional organization ID.
    """

    name = "openai"
    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        organization: Optional[str] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.organization = organization
        self._client: Optional[object] = None

    def _get_client(self) -> object:
        """Get or create the OpenAI client.

        Raises:
            ImportError: If openai package is not installed.
        """
        if self._client is None:
            try:
                import openai
                kwargs = {"api_key": self.api_key}
                if self.organization:
                    kwargs["organization"] = self.organization
                self._client = openai.OpenAI(**kwargs)
            except ImportError:
                raise ImportError(
                    "openai package is required for OpenAIProvider. "
                    "Install it with: pip install openai"
                )
        return self._client

    def generate_structured(
        self,
        system: str,
        prompt: str,
        schema: Dict[str, Any],
        max_tokens: int = 2048,
    ) -> str:
        logger.debug(f"[OpenAI] Requesting {self.model} with a {len(prompt)}-char prompt")
        client = self._get_client()

        response = client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "conversation_summary", "schema": schema},
            },
        )

        return (response.choices[0].message.content or "").strip()
