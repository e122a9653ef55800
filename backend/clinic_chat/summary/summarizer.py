"""Conversation summarizer with strict failure containment.

``ConversationSummarizer.summarize`` always returns a well-formed
:class:`SummaryResponse`:

* fewer than ``min_messages`` messages -> ``INSUFFICIENT_DATA_RESPONSE``
  (no provider is resolved and no request is made)
* any failure along the way -> an error report whose first key point is
  ``"error cause: <cause>: <detail>"``

The cause tag is machine readable; :func:`parse_error_cause` recovers it
so the UI can offer a matching remediation.
"""
import asyncio
import json
import logging
from enum import Enum
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..ai_provider import (
    AIProvider,
    EmptyResponseError,
    JSONParseError,
    ProviderNotAvailableError,
    SchemaViolationError,
    resolve_provider,
    strip_markdown_code_block,
)
from ..chat.schemas import Message
from ..config import ClinicChatConfig
from .prompts import RESPONSE_SCHEMA, SYSTEM_INSTRUCTION, get_summary_prompt
from .schemas import SummaryResponse

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA_RESPONSE = SummaryResponse(
    summary="There are not enough messages to summarize yet. Sorry.",
    keyPoints=["insufficient message count"],
    actionItems=["Wait for a few more messages, then request the summary again."],
)

ERROR_SUMMARY = "Failed to generate the summary."
ERROR_CAUSE_PREFIX = "error cause: "
ERROR_ACTION_ITEMS = [
    "Verify network connectivity.",
    "Verify the AI API key configuration.",
    "Try again in a moment.",
]


class SummaryFailure(str, Enum):
    """Machine-readable cause tags carried by error reports."""
    MISSING_CREDENTIALS = "missing_credentials"
    DISABLED = "disabled"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_OUTPUT = "malformed_output"
    SCHEMA_VIOLATION = "schema_violation"


def build_error_report(cause: SummaryFailure, detail: str = "") -> SummaryResponse:
    message = f"{cause.value}: {detail}" if detail else cause.value
    return SummaryResponse(
        summary=ERROR_SUMMARY,
        keyPoints=[f"{ERROR_CAUSE_PREFIX}{message}"],
        actionItems=list(ERROR_ACTION_ITEMS),
    )


def parse_error_cause(report: SummaryResponse) -> Optional[SummaryFailure]:
    """Return the cause tag of an error report, or None for a real summary."""
    if report.summary != ERROR_SUMMARY or not report.keyPoints:
        return None
    first = report.keyPoints[0]
    if not first.startswith(ERROR_CAUSE_PREFIX):
        return None
    tag = first[len(ERROR_CAUSE_PREFIX):].split(":", 1)[0].strip()
    try:
        return SummaryFailure(tag)
    except ValueError:
        return None


def parse_summary(raw: str, provider_name: str) -> SummaryResponse:
    """Parse the raw model text into a :class:`SummaryResponse`.

    Raises:
        EmptyResponseError: If the text is blank.
        JSONParseError: If the text is not JSON.
        SchemaViolationError: If the JSON does not match the contract.
    """
    text = strip_markdown_code_block(raw or "")
    if not text:
        raise EmptyResponseError(provider_name)
    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        logger.error(f"Failed to parse summary JSON: {text[:200]}")
        raise JSONParseError(str(e), provider_name)
    try:
        return SummaryResponse.model_validate(data)
    except ValidationError as e:
        raise SchemaViolationError(
            "; ".join(f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                      for err in e.errors()),
            provider_name,
        )


class ConversationSummarizer:
    """Distills a room's recent messages into a three-field report."""

    def __init__(
        self,
        config: ClinicChatConfig,
        provider_factory: Optional[Callable[[ClinicChatConfig], AIProvider]] = None,
    ) -> None:
        self._config = config
        self._settings = config.summary
        self._provider_factory = provider_factory or resolve_provider
        self._provider: Optional[AIProvider] = None

    def _get_provider(self) -> AIProvider:
        if self._provider is None:
            self._provider = self._provider_factory(self._config)
        return self._provider

    def select_window(self, messages: List[Message]) -> List[Message]:
        """The newest ``max_messages`` messages, oldest first."""
        return list(messages[-self._settings.max_messages:])

    async def summarize(self, messages: List[Message]) -> SummaryResponse:
        if len(messages) < self._settings.min_messages:
            logger.info(f"[Summary] Skipped: only {len(messages)} message(s)")
            return INSUFFICIENT_DATA_RESPONSE.model_copy(deep=True)

        if not self._settings.enabled:
            return build_error_report(SummaryFailure.DISABLED, "summarization is disabled")

        try:
            provider = self._get_provider()
        except ProviderNotAvailableError as e:
            logger.warning(f"[Summary] No provider: {e.message}")
            return build_error_report(SummaryFailure.MISSING_CREDENTIALS, e.message)
        except Exception as e:
            logger.error(f"[Summary] Provider setup failed: {e}")
            return build_error_report(SummaryFailure.PROVIDER_ERROR, str(e))

        window = self.select_window(messages)
        prompt = get_summary_prompt(window, language=self._settings.language)
        provider_name = getattr(provider, "name", type(provider).__name__)
        logger.info(f"[Summary] Calling {provider_name} with {len(window)} message(s)")

        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(
                    provider.generate_structured, SYSTEM_INSTRUCTION, prompt, RESPONSE_SCHEMA
                ),
                timeout=self._settings.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"[Summary] {provider_name} timed out after {self._settings.timeout_seconds}s")
            return build_error_report(
                SummaryFailure.TIMEOUT, f"no response within {self._settings.timeout_seconds}s"
            )
        except Exception as e:
            logger.error(f"[Summary] {provider_name} call failed: {e}")
            return build_error_report(SummaryFailure.PROVIDER_ERROR, str(e))

        try:
            result = parse_summary(raw, provider_name)
        except EmptyResponseError as e:
            return build_error_report(SummaryFailure.EMPTY_RESPONSE, e.message)
        except JSONParseError as e:
            return build_error_report(SummaryFailure.MALFORMED_OUTPUT, e.message)
        except SchemaViolationError as e:
            logger.error(f"[Summary] {e.message}")
            return build_error_report(SummaryFailure.SCHEMA_VIOLATION, e.message)
        except Exception as e:
            logger.error(f"[Summary] Could not read the {provider_name} response: {e}")
            return build_error_report(SummaryFailure.PROVIDER_ERROR, str(e))

        logger.info(f"[Summary] Generated summary with {len(result.keyPoints)} key point(s)")
        return result
