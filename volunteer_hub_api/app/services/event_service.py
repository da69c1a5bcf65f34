"""
Business logic for events.

Besides the cache-aside CRUD every service has, ``EventService`` deals
in *event trees*: an event together with its roles and each role's
volunteers.  ``get_tree`` and ``list_trees`` assemble trees from the
three tables; ``save_tree`` writes a whole tree back, the way the
event form submits it, deleting the roles and volunteers that are no
longer part of it.

A non-empty ``custom_url`` addresses the event's landing page and must
be unique across events.  Deleting an event deletes its roles (and
their volunteers) through ``RoleService`` so that every cached view
stays coherent.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from ..core import codec
from ..core.cache import CacheKeys, CacheTTL, TTLCache
from ..core.capacity import ceiling, validate_limits
from ..core.errors import ConflictError, DataAccessError, NotFoundError, ValidationError
from ..schemas.event import Event
from ..storage.base import StorageBackend, Tables
from .data_service import DataService, utc_now
from .role_service import RoleService
from .volunteer_service import VolunteerService

logger = logging.getLogger(__name__)


class EventService(DataService):
    """Cache-aside access to the ``events`` table and to whole event trees."""

    table = Tables.EVENTS
    model = Event
    list_ttl = CacheTTL.EVENT_LIST
    item_ttl = CacheTTL.EVENT_DETAIL

    def __init__(
        self,
        backend: StorageBackend,
        cache: TTLCache,
        roles: RoleService,
        volunteers: VolunteerService,
    ) -> None:
        super().__init__(backend, cache)
        self.roles = roles
        self.volunteers = volunteers

    def item_key(self, item_id: str) -> str:
        return CacheKeys.event(item_id)

    def list_key(self, parent_id: Optional[str] = None) -> str:
        return CacheKeys.EVENTS

    # ------------------------------------------------------------------
    # Custom URLs
    # ------------------------------------------------------------------
    async def _check_custom_url(self, custom_url: Optional[str], event_id: Optional[str] = None) -> None:
        if not custom_url:
            return
        records = await self.backend.list(self.table, {"custom_url": custom_url})
        if any(record.get("id") != event_id for record in records):
            raise ConflictError(f"Custom URL {custom_url!r} is already used by another event")

    async def find_by_custom_url(self, custom_url: str) -> Event:
        """Return the tree of the event published under ``custom_url``."""
        records = await self.backend.list(self.table, {"custom_url": custom_url})
        if not records:
            raise NotFoundError(f"No event published under {custom_url!r}")
        return await self.get_tree(records[0]["id"])

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    async def create(self, data: Union[BaseModel, Dict[str, Any]]) -> Event:
        values = self._values(data)
        values.pop("roles", None)
        await self._check_custom_url(values.get("custom_url"))
        return await super().create(values)

    async def update(self, item_id: str, patch: Union[BaseModel, Dict[str, Any]]) -> Event:
        values = self._values(patch, partial=True)
        values.pop("roles", None)
        if values.get("custom_url"):
            await self._check_custom_url(values["custom_url"], item_id)
        return await super().update(item_id, values)

    async def delete(self, item_id: str) -> None:
        for role in await self.roles.list(item_id, fresh=True):
            await self.roles.delete(role.id)
        await super().delete(item_id)
        self.cache.invalidate(self.roles.list_key(item_id))

    # ------------------------------------------------------------------
    # Event trees
    # ------------------------------------------------------------------
    async def _attach_roles(self, event: Event, fresh: bool = False) -> Event:
        roles = []
        for role in await self.roles.list(event.id, fresh=fresh):
            volunteers = await self.volunteers.list(role.id, fresh=fresh)
            roles.append(role.model_copy(update={"volunteers": volunteers}))
        return event.model_copy(update={"roles": roles})

    async def get_tree(self, event_id: str, fresh: bool = False) -> Event:
        """Return the event with its roles and their volunteers."""
        event = await self.get(event_id, fresh=fresh)
        return await self._attach_roles(event, fresh=fresh)

    async def list_trees(self, fresh: bool = False) -> List[Event]:
        return [await self._attach_roles(event, fresh=fresh) for event in await self.list(fresh=fresh)]

    def _validate_tree(self, event: Event) -> None:
        for role in event.roles:
            validate_limits(role.capacity, role.max_capacity)
            if len(role.volunteers) > ceiling(role):
                raise ValidationError(
                    f"Role {role.name!r} holds {len(role.volunteers)} volunteers "
                    f"but accepts at most {ceiling(role)}"
                )

    async def save_tree(self, event: Event) -> Event:
        """Insert or replace an event together with its roles and volunteers.

        Roles and volunteers missing from ``event`` are deleted.  Every
        role that already existed gets its version stamp advanced, so a
        sign-up racing with the save is detected.

        Raises
        ------
        ValidationError
            If a role's limits are inconsistent or it holds more
            volunteers than its ceiling.  Nothing is written then.
        ConflictError
            If the custom URL is used by another event.
        """
        self._validate_tree(event)
        await self._check_custom_url(event.custom_url, event.id)
        now = utc_now()

        flat = event.model_copy(update={"roles": [], "created_at": event.created_at or now, "updated_at": now})
        try:
            records = await self.backend.upsert(self.table, [codec.encode(self.table, flat)])
        except DataAccessError as exc:
            logger.error("Failed to save event %s: %s", event.id, exc)
            raise
        self.remember(codec.decode(self.table, records[0]))

        existing_roles = {role.id: role for role in await self.roles.list(event.id, fresh=True)}
        kept_ids = {role.id for role in event.roles}
        for role_id in existing_roles:
            if role_id not in kept_ids:
                await self.roles.delete(role_id)

        role_records = []
        for role in event.roles:
            previous = existing_roles.get(role.id)
            role_records.append(
                codec.encode(
                    Tables.ROLES,
                    role.model_copy(
                        update={
                            "event_id": event.id,
                            "version": previous.version + 1 if previous else role.version,
                            "created_at": role.created_at or (previous.created_at if previous else None) or now,
                            "updated_at": now,
                        }
                    ),
                )
            )
        try:
            stored_roles = await self.backend.upsert(Tables.ROLES, role_records)
        except DataAccessError as exc:
            logger.error("Failed to save roles of event %s: %s", event.id, exc)
            raise
        for record in stored_roles:
            self.roles.remember(codec.decode(Tables.ROLES, record))

        volunteer_records = []
        for role in event.roles:
            if role.id in existing_roles:
                kept = {volunteer.id for volunteer in role.volunteers}
                for volunteer in await self.volunteers.list(role.id, fresh=True):
                    if volunteer.id not in kept:
                        await self.volunteers.delete(volunteer.id)
            for volunteer in role.volunteers:
                volunteer_records.append(
                    codec.encode(
                        Tables.VOLUNTEERS,
                        volunteer.model_copy(
                            update={
                                "role_id": role.id,
                                "created_at": volunteer.created_at or now,
                                "updated_at": now,
                            }
                        ),
                    )
                )
        if volunteer_records:
            try:
                stored_volunteers = await self.backend.upsert(Tables.VOLUNTEERS, volunteer_records)
            except DataAccessError as exc:
                logger.error("Failed to save volunteers of event %s: %s", event.id, exc)
                raise
            for record in stored_volunteers:
                self.volunteers.remember(codec.decode(Tables.VOLUNTEERS, record))

        logger.info("Event %s saved with %d roles", event.id, len(event.roles))
        return await self.get_tree(event.id)
