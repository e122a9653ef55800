"""Pydantic schemas for chat rooms and invite codes."""
from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator

INVITE_CODE_PATTERN = r"^[0-9A-Z]{4,12}$"


class ChatRoom(BaseModel):
    """A named room whose members share one message stream.

    Attributes:
        id: Unique room identifier.
        name: Human-readable room name.
        code: Short uppercase invite code used to join.
        createdBy: User ID of the creator (the only user allowed to delete).
        createdAt: Creation time in epoch milliseconds.
        participants: User IDs with standing membership (set semantics).
    """
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    code: str = Field(..., pattern=INVITE_CODE_PATTERN)
    createdBy: str = Field(..., min_length=1)
    createdAt: int = Field(..., ge=0, description="Epoch milliseconds")
    participants: List[str] = Field(default_factory=list)

    @field_validator("participants")
    @classmethod
    def _dedupe_participants(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _creator_is_participant(self) -> "ChatRoom":
        if self.createdBy not in self.participants:
            raise ValueError("room creator must be a participant")
        return self


class RoomCreate(BaseModel):
    """Request body for POST /rooms."""
    name: str = Field(..., description="Room name")
    ownerId: str = Field(..., min_length=1, description="Creating user's ID")


class RoomJoin(BaseModel):
    """Request body for POST /rooms/join."""
    code: str = Field(..., description="Invite code (any case)")
    userId: str = Field(..., min_length=1)


class JoinResult(BaseModel):
    """Outcome of redeeming an invite code."""
    room: ChatRoom
    alreadyMember: bool = False
