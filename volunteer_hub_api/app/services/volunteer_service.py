"""
Business logic for volunteers.

Volunteers are listed per role.  They are only ever created by the
sign-up flow or by saving a whole event tree, and removed together with
their role.
"""

from typing import Optional

from ..core.cache import CacheKeys, CacheTTL
from ..schemas.role import Volunteer
from ..storage.base import Tables
from .data_service import DataService


class VolunteerService(DataService):
    """Cache-aside access to the ``volunteers`` table."""

    table = Tables.VOLUNTEERS
    model = Volunteer
    parent_field = "role_id"
    list_ttl = CacheTTL.VOLUNTEER_LIST
    item_ttl = CacheTTL.VOLUNTEER_DETAIL

    def item_key(self, item_id: str) -> str:
        return CacheKeys.volunteer(item_id)

    def list_key(self, parent_id: Optional[str] = None) -> str:
        if parent_id is None:
            return CacheKeys.VOLUNTEERS
        return CacheKeys.role_volunteers(parent_id)
