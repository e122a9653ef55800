"""Pydantic schemas for user identity.

Note:
    Field names use camelCase (e.g., photoURL, displayName) to match the
    JavaScript convention used by the web client and the stored documents.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Role of a clinic staff member."""
    DOCTOR = "doctor"
    STAFF = "staff"
    ADMIN = "admin"


class User(BaseModel):
    """Local profile of an authenticated staff member.

    Attributes:
        id: Stable principal identifier from the identity provider.
        name: Display name shown next to messages.
        email: Contact email (may be empty).
        photoURL: Avatar image URL.
        role: Clinic role.
    """
    id: str = Field(..., min_length=1, description="Principal ID")
    name: str = Field(..., description="Display name")
    email: str = Field(default="", description="Email address")
    photoURL: str = Field(..., description="Avatar URL")
    role: UserRole = Field(default=UserRole.STAFF, description="Clinic role")


class Principal(BaseModel):
    """An externally authenticated identity, as reported by the provider."""
    uid: str = Field(..., min_length=1)
    displayName: Optional[str] = None
    email: Optional[str] = None
    photoURL: Optional[str] = None
