"""
Service layer for volunteer roles.

Roles belong to an event and carry the capacity limits checked by
``core.capacity``.  Limits are validated before anything is written.
Deleting a role deletes its volunteers first so that no volunteer is
left pointing at a missing role.

Every role has a ``version`` stamp.  ``bump_version`` is a conditional
write: it only succeeds while the stored stamp still equals the one the
caller read, which is what lets the sign-up flow detect a concurrent
sign-up for the same role.
"""

import logging
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from ..core import codec
from ..core.cache import CacheKeys, CacheTTL, TTLCache
from ..core.capacity import validate_limits
from ..core.errors import ConflictError, DataAccessError
from ..schemas.role import Role
from ..storage.base import StorageBackend, Tables
from .data_service import DataService, utc_now
from .volunteer_service import VolunteerService

logger = logging.getLogger(__name__)


class RoleService(DataService):
    """Cache-aside access to the ``roles`` table."""

    table = Tables.ROLES
    model = Role
    parent_field = "event_id"
    list_ttl = CacheTTL.ROLE_LIST
    item_ttl = CacheTTL.ROLE_DETAIL

    def __init__(self, backend: StorageBackend, cache: TTLCache, volunteers: VolunteerService) -> None:
        super().__init__(backend, cache)
        self.volunteers = volunteers

    def item_key(self, item_id: str) -> str:
        return CacheKeys.role(item_id)

    def list_key(self, parent_id: Optional[str] = None) -> str:
        if parent_id is None:
            return CacheKeys.ROLES
        return CacheKeys.event_roles(parent_id)

    async def create(self, data: Union[BaseModel, Dict[str, Any]]) -> Role:
        """Create a role; ``data`` must name its ``event_id``.

        Raises
        ------
        ValidationError
            If ``capacity`` or ``max_capacity`` are inconsistent.
        """
        values = self._values(data)
        values.setdefault("capacity", 1)
        validate_limits(values["capacity"], values.get("max_capacity"))
        values["version"] = 0
        return await super().create(values)

    async def update(self, item_id: str, patch: Union[BaseModel, Dict[str, Any]]) -> Role:
        values = self._values(patch, partial=True)
        # Versions only move through bump_version.
        values.pop("version", None)
        if "capacity" in values or "max_capacity" in values:
            current = await self.get(item_id)
            validate_limits(
                values.get("capacity", current.capacity),
                values.get("max_capacity", current.max_capacity),
            )
        return await super().update(item_id, values)

    async def delete(self, item_id: str) -> None:
        for volunteer in await self.volunteers.list(item_id, fresh=True):
            await self.volunteers.delete(volunteer.id)
        await super().delete(item_id)
        self.cache.invalidate(self.volunteers.list_key(item_id))

    async def bump_version(self, role_id: str, expected_version: int) -> Role:
        """Advance the role's version stamp if it still equals ``expected_version``.

        Raises
        ------
        ConflictError
            If another write moved the stamp first.
        """
        patch = {"version": expected_version + 1, "updated_at": utc_now()}
        try:
            record = await self.backend.update(
                self.table,
                role_id,
                codec.encode_patch(self.table, patch),
                expected_version=expected_version,
            )
        except ConflictError:
            logger.warning("Role %s moved past version %s", role_id, expected_version)
            raise
        except DataAccessError as exc:
            logger.error("Failed to bump version of role %s: %s", role_id, exc)
            raise
        role = codec.decode(self.table, record)
        self.remember(role)
        return role
