"""
Cache-aside CRUD shared by every entity service.

A ``DataService`` owns one table.  Reads consult the shared
``TTLCache`` first and fall back to the backend, caching the list and
every item in it under its own key.  Writes go to the backend first;
only once the backend call has succeeded are the cached views patched
in place:

* ``create`` stores the new item and appends it to any cached list it
  belongs to.  A list that is not cached stays missing.
* ``update`` overwrites the item and replaces it inside cached lists,
  keeping their order.  When the item moves to another parent, the old
  parent's list is dropped.
* ``delete`` drops the item and removes it from cached lists.

A failed backend call leaves every cache entry as it was.  Failures are
logged and re-raised unchanged.

Cached values are shared between callers, so returned models must not
be mutated in place; use ``model_copy(update=...)`` instead.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel

from ..core import codec
from ..core.cache import TTLCache
from ..core.errors import DataAccessError
from ..storage.base import StorageBackend

logger = logging.getLogger(__name__)


def utc_now() -> str:
    """Current time as an ISO 8601 string in UTC."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_id() -> str:
    return str(uuid.uuid4())


class DataService:
    """Cache-aside access to one table.

    Subclasses set ``table``, ``model``, the cache lifetimes and, for
    child entities, ``parent_field``, and override the key builders.
    """

    table: str = ""
    model: Type[BaseModel] = BaseModel
    parent_field: Optional[str] = None
    list_ttl: float = 300
    item_ttl: float = 900
    # Newest first lists get new items at the front.
    prepend_new: bool = False

    def __init__(self, backend: StorageBackend, cache: TTLCache) -> None:
        self.backend = backend
        self.cache = cache

    # ------------------------------------------------------------------
    # Cache keys
    # ------------------------------------------------------------------
    def item_key(self, item_id: str) -> str:
        return f"{self.table}:{item_id}"

    def list_key(self, parent_id: Optional[str] = None) -> str:
        if parent_id is None:
            return f"{self.table}:all"
        return f"{self.table}:{self.parent_field}:{parent_id}"

    def _list_keys_for(self, item: Any) -> List[str]:
        """Every cached list ``item`` appears in."""
        keys = [self.list_key(None)]
        if self.parent_field is not None:
            keys.append(self.list_key(getattr(item, self.parent_field)))
        return keys

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------
    def _cache_item(self, item: Any) -> None:
        self.cache.set(self.item_key(item.id), item, self.item_ttl)

    def _patch_lists(self, item: Any, *, remove: bool = False) -> None:
        """Put ``item`` into, or take it out of, every cached list it belongs to.

        An item already in a list is replaced where it stands; otherwise
        it is appended, or put first when ``prepend_new`` is set.
        """
        for key in self._list_keys_for(item):
            cached, found = self.cache.get(key)
            if not found:
                continue
            if remove:
                items = [existing for existing in cached if existing.id != item.id]
            elif any(existing.id == item.id for existing in cached):
                items = [item if existing.id == item.id else existing for existing in cached]
            elif self.prepend_new:
                items = [item] + list(cached)
            else:
                items = list(cached) + [item]
            self.cache.set(key, items, self.list_ttl)

    # ------------------------------------------------------------------
    # Backend helpers
    # ------------------------------------------------------------------
    async def _fetch(self, parent_id: Optional[str]) -> List[Any]:
        filters = None
        if parent_id is not None:
            filters = {codec.COLUMNS[self.table][self.parent_field]: parent_id}
        records = await self.backend.list(self.table, filters)
        return [codec.decode(self.table, record) for record in records]

    def _stamp(self, values: Dict[str, Any], *, created: bool) -> Dict[str, Any]:
        fields = self.model.model_fields
        now = utc_now()
        if created and "created_at" in fields and not values.get("created_at"):
            values["created_at"] = now
        if "updated_at" in fields:
            values["updated_at"] = now
        return values

    @staticmethod
    def _values(data: Union[BaseModel, Dict[str, Any]], *, partial: bool = False) -> Dict[str, Any]:
        if isinstance(data, BaseModel):
            return data.model_dump(mode="json", exclude_none=partial)
        return dict(data)

    async def _insert(self, item: Any) -> Any:
        """Insert a fully built model and register it in the cache."""
        try:
            record = await self.backend.insert(self.table, codec.encode(self.table, item))
        except DataAccessError as exc:
            logger.error("Failed to create %s %s: %s", self.table, item.id, exc)
            raise
        stored = codec.decode(self.table, record)
        self._cache_item(stored)
        self._patch_lists(stored)
        return stored

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    async def list(self, parent_id: Optional[str] = None, fresh: bool = False) -> List[Any]:
        """Return every item, or those under ``parent_id``.

        ``fresh`` skips the cached list but still repopulates it.
        """
        key = self.list_key(parent_id)
        if not fresh:
            cached, found = self.cache.get(key)
            if found:
                return list(cached)
        try:
            items = await self._fetch(parent_id)
        except DataAccessError as exc:
            logger.error("Failed to list %s: %s", self.table, exc)
            raise
        self.cache.set(key, items, self.list_ttl)
        for item in items:
            self._cache_item(item)
        return list(items)

    async def get(self, item_id: str, fresh: bool = False) -> Any:
        key = self.item_key(item_id)
        if not fresh:
            cached, found = self.cache.get(key)
            if found:
                return cached
        try:
            record = await self.backend.get(self.table, item_id)
        except DataAccessError as exc:
            logger.error("Failed to get %s %s: %s", self.table, item_id, exc)
            raise
        item = codec.decode(self.table, record)
        self._cache_item(item)
        return item

    async def create(self, data: Union[BaseModel, Dict[str, Any]]) -> Any:
        """Create an item with a new id from ``data`` and return it."""
        values = self._stamp(self._values(data), created=True)
        values["id"] = new_id()
        item = codec.decode(self.table, codec.encode_patch(self.table, values))
        created = await self._insert(item)
        logger.info("Created %s %s", self.table, created.id)
        return created

    async def update(self, item_id: str, patch: Union[BaseModel, Dict[str, Any]]) -> Any:
        """Write the given fields of an item and return the updated item.

        A pydantic model patch only writes the fields that are not ``None``.
        """
        values = self._stamp(self._values(patch, partial=True), created=False)
        values.pop("id", None)
        previous = None
        if self.parent_field is not None and self.parent_field in values:
            previous = await self.get(item_id)
        try:
            record = await self.backend.update(self.table, item_id, codec.encode_patch(self.table, values))
        except DataAccessError as exc:
            logger.error("Failed to update %s %s: %s", self.table, item_id, exc)
            raise
        item = codec.decode(self.table, record)
        self.remember(item, previous)
        logger.info("Updated %s %s", self.table, item_id)
        return item

    def remember(self, item: Any, previous: Any = None) -> None:
        """Record a freshly written item in the item key and cached lists."""
        self._cache_item(item)
        if previous is not None:
            old_parent = getattr(previous, self.parent_field)
            if old_parent != getattr(item, self.parent_field):
                self.cache.invalidate(self.list_key(old_parent))
        self._patch_lists(item)

    async def save(self, item: Any) -> Any:
        """Insert ``item`` or replace the stored item with the same id."""
        stamps = self._stamp({"created_at": getattr(item, "created_at", None)}, created=True)
        item = item.model_copy(
            update={name: value for name, value in stamps.items() if name in self.model.model_fields}
        )
        try:
            records = await self.backend.upsert(self.table, [codec.encode(self.table, item)])
        except DataAccessError as exc:
            logger.error("Failed to save %s %s: %s", self.table, item.id, exc)
            raise
        stored = codec.decode(self.table, records[0])
        self.remember(stored)
        logger.info("Saved %s %s", self.table, stored.id)
        return stored

    async def delete(self, item_id: str) -> None:
        # The item is needed to know which scoped lists hold it.
        item = await self.get(item_id)
        try:
            await self.backend.delete(self.table, item_id)
        except DataAccessError as exc:
            logger.error("Failed to delete %s %s: %s", self.table, item_id, exc)
            raise
        self.cache.invalidate(self.item_key(item_id))
        self._patch_lists(item, remove=True)
        logger.info("Deleted %s %s", self.table, item_id)
