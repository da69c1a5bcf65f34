"""
Event endpoints.

Events are read and written as whole trees (event, roles and
volunteers), the way the event form and the landing pages use them.
Reading is public so landing pages work for anonymous visitors, and so
is signing up for a role.  Creating, replacing and deleting events
requires a manager.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Any, Dict, List

from volunteer_hub_api.app.container import Services, get_services
from volunteer_hub_api.app.core.security import require_roles
from volunteer_hub_api.app.schemas.event import Event
from volunteer_hub_api.app.schemas.role import VolunteerCreate
from volunteer_hub_api.app.schemas.user import User, UserRole


router = APIRouter()


@router.get("", response_model=List[Event])
async def list_events(services: Services = Depends(get_services)) -> List[Event]:
    """List every event with its roles and volunteers."""
    return await services.events.list_trees()


@router.get("/by-url/{custom_url}", response_model=Event)
async def get_event_by_url(custom_url: str, services: Services = Depends(get_services)) -> Event:
    """Resolve a landing page address to its event."""
    return await services.events.find_by_custom_url(custom_url)


@router.get("/{event_id}", response_model=Event)
async def get_event(event_id: str, services: Services = Depends(get_services)) -> Event:
    return await services.events.get_tree(event_id)


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def save_event(
    body: Event,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    """Insert an event tree, or replace the stored one with the same id."""
    event = await services.events.save_tree(body)
    return {"success": True, "event": event.to_json()}


@router.put("/{event_id}", response_model=Dict[str, Any])
async def replace_event(
    event_id: str,
    body: Event,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    """Replace an event tree.  The body's id must match the path."""
    if body.id != event_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event ID mismatch")
    event = await services.events.save_tree(body)
    return {"success": True, "event": event.to_json()}


@router.delete("/{event_id}", response_model=Dict[str, Any])
async def delete_event(
    event_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    """Delete an event together with its roles and volunteers."""
    await services.events.delete(event_id)
    return {"success": True}


@router.post(
    "/{event_id}/roles/{role_id}/volunteers",
    response_model=Dict[str, Any],
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    event_id: str,
    role_id: str,
    body: VolunteerCreate,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Sign up for a role.

    Answers 409 when the role is already full or changed while signing
    up; in the latter case the caller may simply try again.
    """
    volunteer = await services.signup.sign_up(event_id, role_id, body)
    return {"success": True, "volunteer": volunteer.to_json()}
