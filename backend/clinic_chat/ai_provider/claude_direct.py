"""Claude Direct API provider implementation.

This module provides an AIProvider implementation that connects directly
to Anthropic's Claude API using the official SDK.

Usage:
    provider = ClaudeDirectProvider(api_key="sk-ant-...")
    raw = provider.generate_structured(system, prompt, schema)
"""
import json
import logging
from typing import Any, Dict, Optional

from .base import AIProvider

logger = logging.getLogger(__name__)


class ClaudeDirectProvider(AIProvider):
    """AIProvider implementation using Anthropic's Claude API directly.

    Claude has no JSON response mode here, so the schema is appended to
    the system instruction.

    Attributes:
        api_key: Anthropic API key for authentication.
        model: Claude model to use.
        base_url: Anthropic API base URL.
    """

    name = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    DEFAULT_BASE_URL = "https://api.anthropic.com"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.base_url = base_url or self.DEFAULT_BASE_URL
        self._client: Optional[object] = None

    def _get_client(self) -> object:
        """Get or create the Anthropic client.

        Raises:
            ImportError: If anthropic package is not installed.
        """
        if self._client is None:
            try:
                import anthropic
                self._client = anthropic.Anthropic(
                    api_key=self.api_key,
                    base_url=self.base_url,
                )
            except ImportError:
                raise ImportError(
                    "anthropic package is required for ClaudeDirectProvider. "
                    "Install it with: pip install anthropic"
                )
        return self._client

    def generate_structured(
        self,
        system: str,
        prompt: str,
        schema: Dict[str, Any],
        max_tokens: int = 2048,
    ) -> str:
        logger.debug(f"[Claude] Requesting {self.model} with a {len(prompt)}-char prompt")
        client = self._get_client()

        system_with_schema = (
            f"{system}\n\nRespond with a single JSON object matching this JSON Schema, "
            f"and nothing else:\n{json.dumps(schema, ensure_ascii=False)}"
        )
        response = client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=system_with_schema,
            messages=[{"role": "user", "content": prompt}],
        )

        if not response.content:
            return ""
        return response.content[0].text.strip()
