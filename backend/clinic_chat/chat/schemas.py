"""Pydantic schemas for chat messages.

Messages denormalize the sender's display fields at write time so that the
client can render them without joining against user profiles.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Message(BaseModel):
    """A message in a room's append-only stream.

    Attributes:
        id: Unique message identifier.
        senderId: Author's user ID.
        senderName: Author's display name at send time.
        senderPhoto: Author's avatar URL at send time.
        text: Message text (may be empty for image-only messages).
        imageUrl: Optional inline image (data URL).
        timestamp: Creation time in epoch milliseconds; the ordering key.
        isImportant: Sender-set emphasis flag.
        readBy: User IDs that have observed the message (always has senderId).
    """
    id: str = Field(..., min_length=1)
    senderId: str = Field(..., min_length=1)
    senderName: str = Field(default="")
    senderPhoto: str = Field(default="")
    text: str = Field(default="")
    imageUrl: Optional[str] = None
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds")
    isImportant: bool = False
    readBy: List[str] = Field(default_factory=list)

    @field_validator("readBy")
    @classmethod
    def _dedupe_readers(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _check_invariants(self) -> "Message":
        if self.senderId not in self.readBy:
            raise ValueError("readBy must contain the sender")
        if not self.text.strip() and not self.imageUrl:
            raise ValueError("message needs text or an image")
        return self


class MessageCreate(BaseModel):
    """Request body for POST /rooms/{room_id}/messages."""
    senderId: str = Field(..., min_length=1)
    text: Optional[str] = None
    imageUrl: Optional[str] = None
    isImportant: bool = False


class ReadReceipt(BaseModel):
    """Request body for POST /rooms/{room_id}/messages/{message_id}/read."""
    userId: str = Field(..., min_length=1)
