"""
Pydantic models for volunteer roles and the volunteers filling them.

A ``Role`` belongs to one event and owns an ordered list of
``Volunteer`` records.  ``capacity`` is the minimum headcount and
``max_capacity`` the optional hard ceiling; the limits themselves are
checked by ``core.capacity`` so that violations surface as the data
layer's ``ValidationError`` rather than as a schema error.
"""

from typing import List, Optional

from pydantic import Field

from . import CamelModel


class Volunteer(CamelModel):
    id: str
    role_id: str = ""
    name: str
    email: str
    phone: str = ""
    description: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class VolunteerCreate(CamelModel):
    """Sign-up form submitted by a prospective volunteer."""

    name: str = Field(..., examples=["Ada Lovelace"])
    email: str = Field(..., examples=["ada@example.org"])
    phone: str = ""
    description: str = ""


class Role(CamelModel):
    id: str
    event_id: str = ""
    name: str
    description: str = ""
    capacity: int = 1
    max_capacity: Optional[int] = None
    # Optimistic concurrency stamp; bumped by every accepted sign-up.
    version: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    volunteers: List[Volunteer] = Field(default_factory=list)


class RoleCreate(CamelModel):
    name: str
    description: str = ""
    capacity: int = 1
    max_capacity: Optional[int] = None


class RoleUpdate(CamelModel):
    """All fields optional; only provided fields are written."""

    name: Optional[str] = None
    description: Optional[str] = None
    capacity: Optional[int] = None
    max_capacity: Optional[int] = None
