"""
Local backend keeping every table in a JSON document.

The data directory holds ``settings.json`` (a single object, the
settings row) and one array document per other table: ``users.json``,
``events.json``, ``messages.json``, ``roles.json`` and
``volunteers.json``.  Reads load the document and filter in memory.
Writes load the whole document, change it and write it back
pretty-printed with a two space indent, through a temporary file that
is renamed over the original so readers never observe a half-written
document.

Directories written by the earlier file server, which kept camelCase
documents and nested roles inside events, are converted on start by
``upgrade_legacy_documents`` (see ``storage.legacy``).

The constraints a relational schema would enforce are checked here as
well: duplicate ids and duplicate event custom URLs are conflicts, and
roles and volunteers must point at an existing parent.  A lock shared
by every instance serialises read-modify-write cycles inside one
process.  Nothing coordinates separate processes writing the same
directory.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional

from ..core.errors import (
    BackendUnavailableError,
    ConflictError,
    NotFoundError,
    ReferentialError,
)
from . import legacy
from .base import FOREIGN_KEYS, UNIQUE_COLUMNS, Record, StorageBackend, Tables

logger = logging.getLogger(__name__)

FILES = {
    Tables.SETTINGS: "settings.json",
    Tables.USERS: "users.json",
    Tables.EVENTS: "events.json",
    Tables.MESSAGES: "messages.json",
    Tables.ROLES: "roles.json",
    Tables.VOLUNTEERS: "volunteers.json",
}

# Tables stored as a single JSON object instead of an array.
SINGLETONS = {Tables.SETTINGS}

_write_lock = threading.RLock()


def _matches(record: Record, filters: Dict[str, Any]) -> bool:
    return all(record.get(column) == value for column, value in filters.items())


def _merge(existing: List[Record], records: List[Record]) -> List[Record]:
    """``existing`` with ``records`` replacing or appended by id."""
    merged = {record.get("id"): record for record in existing}
    merged.update((record.get("id"), record) for record in records)
    return list(merged.values())


class LocalFileBackend(StorageBackend):
    """Table store backed by JSON files in ``data_dir``.

    The directory is created on the first write, not on construction.
    """

    name = "local"

    def __init__(self, data_dir: str) -> None:
        self.data_dir = os.path.abspath(data_dir)

    # ------------------------------------------------------------------
    # Document helpers
    # ------------------------------------------------------------------
    def _path(self, table: str) -> str:
        try:
            return os.path.join(self.data_dir, FILES[table])
        except KeyError:
            raise NotFoundError(f"Unknown table {table!r}") from None

    def _read(self, table: str) -> List[Record]:
        path = self._path(table)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.error("Error reading from %s: %s", path, exc)
            raise BackendUnavailableError(f"Cannot read {FILES[table]}: {exc}", native=str(exc)) from exc
        if table in SINGLETONS:
            return [data] if data else []
        if not isinstance(data, list):
            raise BackendUnavailableError(f"{FILES[table]} does not hold a JSON array")
        return data

    def _write(self, table: str, records: List[Record]) -> None:
        path = self._path(table)
        data: Any = records
        if table in SINGLETONS:
            data = records[0] if records else {}
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            logger.error("Error writing to %s: %s", path, exc)
            raise BackendUnavailableError(f"Cannot write {FILES[table]}: {exc}", native=str(exc)) from exc

    # ------------------------------------------------------------------
    # Constraint checks
    # ------------------------------------------------------------------
    def _check_unique(self, table: str, existing: List[Record], record: Record) -> None:
        for column in UNIQUE_COLUMNS.get(table, ()):
            value = record.get(column)
            if not value:
                continue
            for other in existing:
                if other.get("id") != record.get("id") and other.get(column) == value:
                    raise ConflictError(
                        f"{table}.{column} {value!r} is already used",
                        native={"column": column, "value": value},
                    )

    def _check_parent(self, table: str, record: Record) -> None:
        if table not in FOREIGN_KEYS:
            return
        column, parent_table = FOREIGN_KEYS[table]
        parent_id = record.get(column)
        parents = self._read(parent_table)
        if not any(parent.get("id") == parent_id for parent in parents):
            raise ReferentialError(
                f"{table}.{column} {parent_id!r} does not exist in {parent_table}",
                native={"column": column, "value": parent_id},
            )

    def _check_no_children(self, table: str, record_id: str) -> None:
        for child_table, (column, parent_table) in FOREIGN_KEYS.items():
            if parent_table != table:
                continue
            if any(child.get(column) == record_id for child in self._read(child_table)):
                raise ReferentialError(
                    f"{table} {record_id} is still referenced from {child_table}",
                    native={"table": child_table, "column": column},
                )

    def upgrade_legacy_documents(self) -> List[str]:
        """Rewrite documents left by the earlier file server into table records.

        Returns the tables that were rewritten.  Documents already in
        table form are left alone, so calling this on every start is
        harmless.  Event trees are split last, after their roles and
        volunteers are stored, so an interrupted upgrade is repeated in
        full on the next start.
        """
        upgraded = []
        with _write_lock:
            settings = self._read(Tables.SETTINGS)
            if settings and legacy.is_legacy_settings(settings[0]):
                self._write(Tables.SETTINGS, [legacy.settings_row(settings[0])])
                upgraded.append(Tables.SETTINGS)
            for table, convert in ((Tables.USERS, legacy.convert_users), (Tables.MESSAGES, legacy.convert_messages)):
                records = self._read(table)
                if legacy.is_legacy(table, records):
                    self._write(table, convert(records))
                    upgraded.append(table)
            records = self._read(Tables.EVENTS)
            if legacy.is_legacy(Tables.EVENTS, records):
                events, roles, volunteers = legacy.split_event_trees(records)
                self._write(Tables.ROLES, _merge(self._read(Tables.ROLES), roles))
                self._write(Tables.VOLUNTEERS, _merge(self._read(Tables.VOLUNTEERS), volunteers))
                self._write(Tables.EVENTS, events)
                upgraded.append(Tables.EVENTS)
        if upgraded:
            logger.warning("Upgraded legacy documents in %s: %s", self.data_dir, ", ".join(upgraded))
        return upgraded

    # ------------------------------------------------------------------
    # StorageBackend
    # ------------------------------------------------------------------
    async def list(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        records = self._read(table)
        if filters:
            records = [record for record in records if _matches(record, filters)]
        return records

    async def get(self, table: str, record_id: str) -> Record:
        for record in self._read(table):
            if record.get("id") == record_id:
                return record
        raise NotFoundError(f"{table} {record_id} not found")

    async def insert(self, table: str, record: Record) -> Record:
        stored = await self.insert_many(table, [record])
        return stored[0]

    async def insert_many(self, table: str, records: List[Record]) -> List[Record]:
        if not records:
            return []
        with _write_lock:
            existing = self._read(table)
            ids = {record.get("id") for record in existing}
            for record in records:
                if record.get("id") in ids:
                    raise ConflictError(f"{table} {record.get('id')} already exists")
                if table in SINGLETONS and existing:
                    raise ConflictError(f"{table} already holds its single row")
                self._check_unique(table, existing, record)
                self._check_parent(table, record)
                ids.add(record.get("id"))
                existing.append(dict(record))
            self._write(table, existing)
        logger.info("Inserted %d %s", len(records), table)
        return [dict(record) for record in records]

    async def upsert(self, table: str, records: List[Record]) -> List[Record]:
        if not records:
            return []
        with _write_lock:
            existing = self._read(table)
            positions = {record.get("id"): index for index, record in enumerate(existing)}
            for record in records:
                self._check_unique(table, existing, record)
                self._check_parent(table, record)
                index = positions.get(record.get("id"))
                if index is None:
                    positions[record.get("id")] = len(existing)
                    existing.append(dict(record))
                else:
                    existing[index] = dict(record)
            self._write(table, existing)
        logger.info("Upserted %d %s", len(records), table)
        return [dict(record) for record in records]

    async def update(
        self,
        table: str,
        record_id: str,
        patch: Record,
        expected_version: Optional[int] = None,
    ) -> Record:
        with _write_lock:
            existing = self._read(table)
            for index, record in enumerate(existing):
                if record.get("id") == record_id:
                    break
            else:
                raise NotFoundError(f"{table} {record_id} not found")
            if expected_version is not None and record.get("version", 0) != expected_version:
                raise ConflictError(
                    f"{table} {record_id} changed since version {expected_version}",
                    native={"expected": expected_version, "actual": record.get("version", 0)},
                )
            updated = dict(record)
            updated.update(patch)
            updated["id"] = record_id
            self._check_unique(table, existing, updated)
            self._check_parent(table, updated)
            existing[index] = updated
            self._write(table, existing)
        logger.info("Updated %s %s", table, record_id)
        return dict(updated)

    async def delete(self, table: str, record_id: str) -> None:
        with _write_lock:
            existing = self._read(table)
            remaining = [record for record in existing if record.get("id") != record_id]
            if len(remaining) == len(existing):
                raise NotFoundError(f"{table} {record_id} not found")
            self._check_no_children(table, record_id)
            self._write(table, remaining)
        logger.info("Deleted %s %s", table, record_id)
