"""
Pydantic models for user data.

Users are created by the identity collaborator on first sign-in and
never any other way.  Their ``role`` is hierarchical: an OWNER can do
everything a MANAGER can, and a MANAGER everything a VOLUNTEER can.
Exactly one OWNER exists at a time.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from . import CamelModel


class UserRole(str, Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    VOLUNTEER = "VOLUNTEER"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def includes(self, other: "UserRole") -> bool:
        """True when this role carries every capability of ``other``."""
        return self.rank >= other.rank


_RANKS = {UserRole.VOLUNTEER: 0, UserRole.MANAGER: 1, UserRole.OWNER: 2}


class User(CamelModel):
    id: str
    name: str = ""
    email: str = ""
    image: Optional[str] = None
    role: UserRole = UserRole.VOLUNTEER
    email_notifications: bool = True
    unread_messages: int = Field(0, ge=0)
    provider_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SignIn(CamelModel):
    """Identity handed over by the identity collaborator on sign-in."""

    id: str = Field(..., examples=["0b8e1d0c-4c4e-4a59-9b7e-0f0c3b1d2a11"])
    name: str = ""
    email: str = Field(..., examples=["user@example.com"])
    image: Optional[str] = None
    provider_id: Optional[str] = Field(None, examples=["google"])


class UserUpdate(CamelModel):
    """Partial update; fields left as ``None`` are not written."""

    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    role: Optional[UserRole] = None
    email_notifications: Optional[bool] = None
    unread_messages: Optional[int] = Field(None, ge=0)
    provider_id: Optional[str] = None
