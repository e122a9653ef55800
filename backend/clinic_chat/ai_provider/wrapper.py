"""Error types and response helpers shared by the AI providers.

Usage:
    from clinic_chat.ai_provider.wrapper import strip_markdown_code_block

    data = json.loads(strip_markdown_code_block(raw))
"""


class AIProviderError(Exception):
    """Base exception for AI provider errors."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ProviderNotAvailableError(AIProviderError):
    """Raised when no AI provider is available."""
    def __init__(self, message: str = "No active AI provider available"):
        super().__init__(message, status_code=503)


class EmptyResponseError(AIProviderError):
    """Raised when the provider returns no text."""
    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        super().__init__(f"Empty response from {provider_name}", status_code=502)


class JSONParseError(AIProviderError):
    """Raised when AI response JSON parsing fails."""
    def __init__(self, message: str, provider_name: str):
        self.provider_name = provider_name
        super().__init__(
            f"Failed to parse AI response as JSON from {provider_name}: {message}",
            status_code=502,
        )


class SchemaViolationError(AIProviderError):
    """Raised when the parsed response does not match the expected shape."""
    def __init__(self, message: str, provider_name: str):
        self.provider_name = provider_name
        super().__init__(
            f"Response from {provider_name} does not match the schema: {message}",
            status_code=502,
        )


def strip_markdown_code_block(text: str) -> str:
    """Strip markdown code block wrappers from text.

    Args:
        text: Text that may be wrapped in ```json ... ``` blocks.

    Returns:
        Text with code block wrappers removed.
    """
    text = text.strip()
    if text.startswith("```"):
        # Drop the opening fence line (e.g. ```json)
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline + 1:]
        else:
            text = text[3:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()
    return text
