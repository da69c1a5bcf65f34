"""
Conversion of data directories written by the earlier file server.

That server kept camelCase documents: ``settings.json`` was the settings
object itself, ``users.json`` and ``messages.json`` held camelCase
records, and ``events.json`` held whole event trees with roles and
volunteers nested inside.  The functions here turn such documents into
the snake_case table records ``LocalFileBackend`` stores;
``LocalFileBackend.upgrade_legacy_documents`` applies them once when
the backend is created.
"""

import logging
import uuid
from typing import Any, Dict, List, Tuple

import pydantic
from pydantic.alias_generators import to_snake

from ..core import codec
from ..core.errors import ValidationError
from ..schemas.event import Event
from ..schemas.message import Message
from ..schemas.settings import SystemSettings
from ..schemas.user import User
from .base import Record, Tables

logger = logging.getLogger(__name__)

# Keys the old server used for a user's role, newest first.
_USER_ROLE_KEYS = ("userRole", "user_role", "role")

# Older clients wrote lowercase roles and an ADMIN role below the owner.
_ROLE_NAMES = {"ADMIN": "MANAGER"}


def _has_camel_keys(record: Record) -> bool:
    return any(key != to_snake(key) for key in record)


def is_legacy_settings(row: Record) -> bool:
    """True for a bare settings object rather than a ``key``/``value`` row."""
    return not ("key" in row and "value" in row)


def is_legacy(table: str, records: List[Record]) -> bool:
    """True when ``records`` of ``table`` were written by the old server."""
    for record in records:
        if _has_camel_keys(record):
            return True
        if table == Tables.EVENTS and "roles" in record:
            return True
        if table == Tables.USERS and "user_role" not in record:
            return True
    return False


def _validate(model, data: Dict[str, Any]):
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Cannot convert legacy {model.__name__}: {exc}", native=exc.errors()) from exc


def settings_row(data: Record) -> Record:
    return codec.encode_settings(_validate(SystemSettings, data), str(uuid.uuid4()))


def convert_users(records: List[Record]) -> List[Record]:
    converted = []
    for record in records:
        data = {key: value for key, value in record.items() if key not in _USER_ROLE_KEYS}
        role = next((record[key] for key in _USER_ROLE_KEYS if record.get(key)), None)
        if role:
            role = str(role).upper()
            data["role"] = _ROLE_NAMES.get(role, role)
        converted.append(codec.encode(Tables.USERS, _validate(User, data)))
    return converted


def convert_messages(records: List[Record]) -> List[Record]:
    converted = []
    for record in records:
        if not record.get("recipientId", record.get("recipient_id")):
            logger.warning("Dropping legacy message %s without a recipient", record.get("id"))
            continue
        converted.append(codec.encode(Tables.MESSAGES, _validate(Message, record)))
    return converted


def split_event_trees(records: List[Record]) -> Tuple[List[Record], List[Record], List[Record]]:
    """Split nested event trees into event, role and volunteer records."""
    events, roles, volunteers = [], [], []
    for record in records:
        event = _validate(Event, record)
        events.append(codec.encode(Tables.EVENTS, event))
        for role in event.roles:
            roles.append(codec.encode(Tables.ROLES, role.model_copy(update={"event_id": event.id})))
            for volunteer in role.volunteers:
                volunteers.append(
                    codec.encode(Tables.VOLUNTEERS, volunteer.model_copy(update={"role_id": role.id}))
                )
    return events, roles, volunteers
