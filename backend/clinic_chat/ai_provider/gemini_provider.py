"""Google Gemini provider implementation.

Connects to the Gemini API through the ``google-genai`` SDK and uses its
JSON response mode with a response schema.

Usage:
    provider = GeminiProvider(api_key="...")
    raw = provider.generate_structured(system, prompt, schema)
"""
import logging
from typing import Any, Dict, Optional

from .base import AIProvider

logger = logging.getLogger(__name__)


class GeminiProvider(AIProvider):
    """AIProvider implementation using Google's Gemini API.

    Attributes:
        api_key: Gemini API key for authentication.
        model: Gemini model to use (default: gemini-2.5-flash).
    """

    name = "gemini"
    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(self, api_key: str, model: Optional[str] = None) -> None:
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self._client: Optional[object] = None

    def _get_client(self) -> object:
        """Get or create the Gemini client.

        Raises:
            ImportError: If google-genai package is not installed.
        """
        if self._client is None:
            try:
                from google import genai
                self._client = genai.Client(api_key=self.api_key)
            except ImportError:
                raise ImportError(
                    "google-genai package is required for GeminiProvider. "
                    "Install it with: pip install google-genai"
                )
        return self._client

    def generate_structured(
        self,
        system: str,
        prompt: str,
        schema: Dict[str, Any],
        max_tokens: int = 2048,
    ) -> str:
        from google.genai import types

        logger.debug(f"[Gemini] Requesting {self.model} with a {len(prompt)}-char prompt")
        client = self._get_client()
        response = client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system,
                response_mime_type="application/json",
                response_schema=schema,
                max_output_tokens=max_tokens,
            ),
        )
        return (response.text or "").strip()
