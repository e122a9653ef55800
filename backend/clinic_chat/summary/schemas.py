"""Pydantic schemas for conversation summaries.

Note:
    Field names use camelCase (keyPoints, actionItems) because the same
    names form the output contract of the text-generation call.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from ..chat.schemas import Message


class SummaryResponse(BaseModel):
    """Structured summary of a room's recent conversation.

    Ephemeral: regenerated on every request and never persisted.

    Attributes:
        summary: Free-text overview of the conversation.
        keyPoints: Ordered list of decisions and important facts.
        actionItems: Ordered list of follow-up actions.
    """
    model_config = ConfigDict(extra="forbid")

    summary: str = Field(..., description="Overall summary")
    keyPoints: List[str] = Field(..., description="Key points")
    actionItems: List[str] = Field(..., description="Next actions")


class SummaryRequest(BaseModel):
    """Request body for the ad-hoc POST /summary endpoint."""
    messages: List[Message] = Field(..., description="Chat history, oldest first")
