"""Prompt templates for the conversation summarizer."""
from typing import List

from ..chat.schemas import Message

IMAGE_PLACEHOLDER = "[image]"
IMPORTANT_TAG = " [IMPORTANT]"

SYSTEM_INSTRUCTION = (
    "You are an assistant that summarizes internal team chat for a dental clinic. "
    "Staff use the chat to coordinate reception, appointments, treatment rooms, "
    "and supplies. Be concise and factual. Messages tagged [IMPORTANT] were "
    "flagged by their sender and must be reflected in the key points."
)

SUMMARY_PROMPT = """Summarize the following staff conversation.

Write all output in {language}.

Respond with a JSON object with exactly these fields:
- "summary": a short overview of the conversation (2-4 sentences)
- "keyPoints": the decisions and important facts, in order of appearance
- "actionItems": concrete follow-up actions; use an empty list if there are none

## Conversation
{transcript}
"""

# Output contract of the text-generation call
RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "keyPoints": {"type": "array", "items": {"type": "string"}},
        "actionItems": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["summary", "keyPoints", "actionItems"],
}


def format_line(message: Message) -> str:
    """Render one message as ``"{senderName}: {text}{tag}"``."""
    body = message.text if message.text.strip() else IMAGE_PLACEHOLDER
    tag = IMPORTANT_TAG if message.isImportant else ""
    return f"{message.senderName}: {body}{tag}"


def render_transcript(messages: List[Message]) -> str:
    return "\n".join(format_line(m) for m in messages)


def get_summary_prompt(messages: List[Message], language: str = "Japanese") -> str:
    return SUMMARY_PROMPT.format(language=language, transcript=render_transcript(messages))
