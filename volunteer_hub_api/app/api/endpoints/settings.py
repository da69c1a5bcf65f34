"""
Settings endpoints.

Anyone may read the system settings, since the sign-in page needs to
know which providers are enabled.  Only the owner may change them.
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict

from volunteer_hub_api.app.container import Services, get_services
from volunteer_hub_api.app.core.security import require_roles
from volunteer_hub_api.app.schemas.settings import SystemSettings
from volunteer_hub_api.app.schemas.user import User, UserRole


router = APIRouter()


@router.get("", response_model=SystemSettings)
async def get_settings(services: Services = Depends(get_services)) -> SystemSettings:
    """Return the current settings, or the defaults if none were saved."""
    return await services.settings.get()


@router.post("", response_model=Dict[str, Any])
async def save_settings(
    body: SystemSettings,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.OWNER)),
) -> Dict[str, Any]:
    """Replace the settings.  Only the owner may do this."""
    await services.settings.save(body)
    return {"success": True}
