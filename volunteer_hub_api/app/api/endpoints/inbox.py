"""Inbox endpoint: opening the inbox marks everything read."""

from fastapi import APIRouter, Depends
from typing import List

from volunteer_hub_api.app.container import Services, get_services
from volunteer_hub_api.app.core.security import get_current_user
from volunteer_hub_api.app.schemas.message import Message
from volunteer_hub_api.app.schemas.user import User


router = APIRouter()


@router.post("", response_model=List[Message])
async def open_inbox(
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> List[Message]:
    """Mark the caller's unread messages read and return their inbox, newest first."""
    return await services.inbox.visit(current_user.id)
