"""
User endpoints.

Besides plain CRUD these routes cover the sign-in hand-off from the
identity collaborator, the unread message counter and ownership
transfer.  Role changes go through ``UserService.update_role`` so that
there is never more than one owner.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Any, Dict, List

from volunteer_hub_api.app.container import Services, get_services
from volunteer_hub_api.app.core.security import get_current_user, require_roles
from volunteer_hub_api.app.schemas.user import SignIn, User, UserRole, UserUpdate


router = APIRouter()


def _ensure_self_or_manager(user_id: str, current_user: User) -> None:
    if current_user.id != user_id and not current_user.role.includes(UserRole.MANAGER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")


@router.post("/sign-in", response_model=User)
async def sign_in(body: SignIn, services: Services = Depends(get_services)) -> User:
    """Hand-off from the identity collaborator.

    Creates the user on first sign-in (the first user ever becomes the
    owner) and returns the stored user otherwise.
    """
    return await services.users.sign_in(body)


@router.get("", response_model=List[User])
async def list_users(
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> List[User]:
    return await services.users.list()


@router.get("/{user_id}", response_model=User)
async def get_user(
    user_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> User:
    return await services.users.get(user_id)


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def save_user(
    body: User,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    """Insert a user or replace the stored user with the same id.

    New users start as volunteers.  Giving a user any other role, or
    changing a stored user's role, requires the owner; ownership itself
    only moves through ``transfer-ownership``.
    """
    current_role = await services.users.stored_role(body.id) or UserRole.VOLUNTEER
    if body.role is not current_role and current_user.role is not UserRole.OWNER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner may change roles")
    user = await services.users.save(body)
    return {"success": True, "user": user.to_json()}


@router.patch("/{user_id}", response_model=Dict[str, Any])
async def update_user(
    user_id: str,
    body: UserUpdate,
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Update a user's profile fields.

    Users may edit themselves; managers may edit anyone.  Changing a
    role requires the owner.
    """
    _ensure_self_or_manager(user_id, current_user)
    role = body.role
    patch = body.model_copy(update={"role": None})
    if role is not None:
        if current_user.role is not UserRole.OWNER:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner may change roles")
        await services.users.update_role(user_id, role)
    if patch.model_dump(exclude_none=True):
        await services.users.update(user_id, patch)
    return {"success": True}


@router.delete("/{user_id}", response_model=Dict[str, Any])
async def delete_user(
    user_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.OWNER)),
) -> Dict[str, Any]:
    await services.users.delete(user_id)
    return {"success": True}


@router.patch("/{user_id}/unread-messages/increment", response_model=Dict[str, Any])
async def increment_unread(
    user_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    user = await services.users.increment_unread(user_id)
    return {"success": True, "unreadMessages": user.unread_messages}


@router.patch("/{user_id}/unread-messages/reset", response_model=Dict[str, Any])
async def reset_unread(
    user_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    _ensure_self_or_manager(user_id, current_user)
    user = await services.users.reset_unread(user_id)
    return {"success": True, "unreadMessages": user.unread_messages}


@router.post("/{user_id}/transfer-ownership", response_model=Dict[str, Any])
async def transfer_ownership(
    user_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.OWNER)),
) -> Dict[str, Any]:
    """Make ``user_id`` the owner; the caller becomes a manager."""
    users = await services.users.transfer_ownership(user_id)
    return {"success": True, "users": [user.to_json() for user in users]}
