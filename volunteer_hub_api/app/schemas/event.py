"""
Pydantic models for event data.

``Event`` is the domain object.  Its ``roles`` list is only filled by
the event-tree operations of ``EventService`` (``get_tree``,
``list_trees``, ``save_tree``); the plain CRUD calls return flat
events.  ``EventCreate`` and ``EventUpdate`` are the request payloads.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field

from . import CamelModel
from .role import Role


class LandingPageTheme(str, Enum):
    DEFAULT = "default"
    LIGHT = "light"
    DARK = "dark"
    COLORFUL = "colorful"


class EventBase(CamelModel):
    name: str = Field(..., examples=["Spring park clean-up"])
    date: str = Field(..., examples=["2025-04-12T09:00:00Z"])
    location: str = ""
    description: str = ""
    landing_page_enabled: bool = False
    landing_page_title: Optional[str] = None
    landing_page_description: Optional[str] = None
    landing_page_image: Optional[str] = None
    landing_page_theme: Optional[LandingPageTheme] = None
    custom_url: Optional[str] = None


class EventCreate(EventBase):
    """Schema for creating an event."""


class Event(EventBase):
    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    roles: List[Role] = Field(default_factory=list)


class EventUpdate(CamelModel):
    """Schema for updating an event.

    All fields are optional; only provided fields will be updated.
    """

    name: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    landing_page_enabled: Optional[bool] = None
    landing_page_title: Optional[str] = None
    landing_page_description: Optional[str] = None
    landing_page_image: Optional[str] = None
    landing_page_theme: Optional[LandingPageTheme] = None
    custom_url: Optional[str] = None
