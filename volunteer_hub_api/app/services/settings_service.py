"""
System settings service.

Settings live in a single row of ``system_settings`` keyed
``"settings"`` whose ``value`` column holds every field.  Until that
row is written the defaults of ``SystemSettings`` apply.  The result is
cached for an hour either way.
"""

import logging

from ..core import codec
from ..core.cache import CacheKeys, CacheTTL, TTLCache
from ..core.errors import DataAccessError
from ..schemas.settings import SystemSettings
from ..storage.base import StorageBackend, Tables
from .data_service import new_id

logger = logging.getLogger(__name__)


class SettingsService:
    """Read and write the settings singleton."""

    def __init__(self, backend: StorageBackend, cache: TTLCache) -> None:
        self.backend = backend
        self.cache = cache

    async def _find_row(self):
        rows = await self.backend.list(Tables.SETTINGS, {"key": codec.SETTINGS_KEY})
        return rows[0] if rows else None

    async def get(self) -> SystemSettings:
        cached, found = self.cache.get(CacheKeys.SETTINGS)
        if found:
            return cached
        try:
            row = await self._find_row()
        except DataAccessError as exc:
            logger.error("Failed to load settings: %s", exc)
            raise
        settings = codec.decode_settings(row) if row else SystemSettings()
        self.cache.set(CacheKeys.SETTINGS, settings, CacheTTL.SETTINGS)
        return settings

    async def save(self, settings: SystemSettings) -> SystemSettings:
        """Write ``settings`` over the stored row, creating it if needed."""
        try:
            row = await self._find_row()
            if row:
                value = codec.encode_settings(settings, row["id"])["value"]
                stored = await self.backend.update(Tables.SETTINGS, row["id"], {"value": value})
            else:
                stored = await self.backend.insert(Tables.SETTINGS, codec.encode_settings(settings, new_id()))
        except DataAccessError as exc:
            logger.error("Failed to save settings: %s", exc)
            raise
        saved = codec.decode_settings(stored)
        self.cache.set(CacheKeys.SETTINGS, saved, CacheTTL.SETTINGS)
        logger.info("Settings updated")
        return saved
