"""
Storage backend interface.

A backend stores flat snake_case records in named tables and knows
nothing about domain models, caching or business rules beyond the
integrity constraints a relational schema would enforce (primary keys,
the unique custom URL of an event and the parent foreign keys of roles
and volunteers).  Exactly one backend is created per process by
``storage.factory.create_backend`` and shared by every data service.

All methods are coroutines.  Failures are raised as subclasses of
``core.errors.DataAccessError``; backend specific exceptions never
escape.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]


class Tables:
    """Names of the tables the data layer uses."""

    EVENTS = "events"
    ROLES = "roles"
    VOLUNTEERS = "volunteers"
    USERS = "users"
    MESSAGES = "messages"
    SETTINGS = "system_settings"

    ALL = (EVENTS, ROLES, VOLUNTEERS, USERS, MESSAGES, SETTINGS)


# child table -> (foreign key column, parent table)
FOREIGN_KEYS: Dict[str, tuple] = {
    Tables.ROLES: ("event_id", Tables.EVENTS),
    Tables.VOLUNTEERS: ("role_id", Tables.ROLES),
}

# table -> columns that must be unique when not empty
UNIQUE_COLUMNS: Dict[str, tuple] = {
    Tables.EVENTS: ("custom_url",),
}


class StorageBackend(ABC):
    """Abstract table store used by the data services."""

    name = "abstract"

    @abstractmethod
    async def list(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Return every record of ``table`` whose columns equal all ``filters``."""

    @abstractmethod
    async def get(self, table: str, record_id: str) -> Record:
        """Return one record or raise ``NotFoundError``."""

    @abstractmethod
    async def insert(self, table: str, record: Record) -> Record:
        """Insert a new record and return it as stored."""

    @abstractmethod
    async def insert_many(self, table: str, records: List[Record]) -> List[Record]:
        """Insert several records in one call; either all or none are stored."""

    @abstractmethod
    async def upsert(self, table: str, records: List[Record]) -> List[Record]:
        """Insert or replace records by id in one call."""

    @abstractmethod
    async def update(
        self,
        table: str,
        record_id: str,
        patch: Record,
        expected_version: Optional[int] = None,
    ) -> Record:
        """Merge ``patch`` into a stored record and return the result.

        Parameters
        ----------
        table : str
            Table holding the record.
        record_id : str
            Primary key of the record.
        patch : dict
            Columns to overwrite.
        expected_version : Optional[int]
            When given the write is only applied if the stored
            ``version`` column still equals this value; otherwise
            ``ConflictError`` is raised and nothing changes.

        Returns
        -------
        dict
            The record after the update.
        """

    @abstractmethod
    async def delete(self, table: str, record_id: str) -> None:
        """Delete one record or raise ``NotFoundError``."""
