"""
Top-level API router.

This router aggregates the domain routers under a unified prefix.  When
new endpoints are added or when new domains are introduced, update
this file to include their routers.
"""

from fastapi import APIRouter

from .endpoints import (
    dashboard,
    events,
    inbox,
    messages,
    settings,
    users,
)

router = APIRouter()

router.include_router(settings.router, prefix="/settings", tags=["settings"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(messages.router, prefix="/messages", tags=["messages"])
router.include_router(inbox.router, prefix="/inbox", tags=["messages"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
