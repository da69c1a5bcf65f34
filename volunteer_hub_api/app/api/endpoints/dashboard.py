"""
Dashboard endpoint.

Aggregates staffing metrics over every event: totals, fill rates, the
staffing buckets of all roles and the upcoming/past split.
"""

from dataclasses import asdict
from fastapi import APIRouter, Depends
from typing import Any, Dict

from pydantic.alias_generators import to_camel

from volunteer_hub_api.app.container import Services, get_services
from volunteer_hub_api.app.core.capacity import summarize
from volunteer_hub_api.app.core.security import require_roles
from volunteer_hub_api.app.schemas.user import User, UserRole


router = APIRouter()


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_camel(key): _camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_camelize(item) for item in value]
    return value


@router.get("", response_model=Dict[str, Any])
async def get_dashboard(
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    metrics = summarize(await services.events.list_trees())
    return _camelize(asdict(metrics))
