"""
Identity dependencies.

Authentication happens in front of the API: the identity collaborator
signs the user in and every request carries the resulting user id in
the ``X-User-Id`` header.  ``get_current_user`` resolves that id to a
stored user, and ``require_roles`` restricts an endpoint to callers
whose role includes one of the given roles.  Roles are hierarchical,
so an OWNER passes every check a MANAGER passes.
"""

from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status

from ..container import Services, get_services
from ..schemas.user import User, UserRole
from .errors import NotFoundError


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    services: Services = Depends(get_services),
) -> User:
    """Dependency that retrieves the calling user.

    Raises HTTP 401 when the header is missing or names no known user.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        return await services.users.get(x_user_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
        )


def require_roles(*roles: UserRole) -> Callable:
    """Return a dependency that admits users holding any of ``roles``.

    Parameters
    ----------
    roles : UserRole
        Roles granting access.  A role also grants every role below it.

    Returns
    -------
    Callable
        A dependency function that returns the current user or raises
        HTTP 403 when the user's role is insufficient.
    """

    async def checker(user: User = Depends(get_current_user)) -> User:
        if not any(user.role.includes(role) for role in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return checker
