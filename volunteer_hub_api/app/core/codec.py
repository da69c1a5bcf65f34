"""
Translation between domain models and storage records.

Storage records are flat dictionaries with snake_case column names.
Most columns share the name of the model attribute they hold; the
column maps below list every column explicitly so that renamed ones
(``user_role`` for ``User.role``) and omitted ones (the nested
``roles`` of an event, the nested ``volunteers`` of a role) are visible
in one place.

``decode(table, encode(table, model)) == model`` holds for every table
as long as the nested lists are empty, which is how flat records are
always decoded.  Invalid records raise ``ValidationError``.
"""

from typing import Any, Dict, Type

import pydantic

from ..schemas import CamelModel
from ..schemas.event import Event
from ..schemas.message import Message
from ..schemas.role import Role, Volunteer
from ..schemas.settings import SystemSettings
from ..schemas.user import User
from ..storage.base import Record, Tables
from .errors import ValidationError

SETTINGS_KEY = "settings"

MODELS: Dict[str, Type[CamelModel]] = {
    Tables.EVENTS: Event,
    Tables.ROLES: Role,
    Tables.VOLUNTEERS: Volunteer,
    Tables.USERS: User,
    Tables.MESSAGES: Message,
}

# attribute -> column
COLUMNS: Dict[str, Dict[str, str]] = {
    Tables.EVENTS: {
        "id": "id",
        "name": "name",
        "date": "date",
        "location": "location",
        "description": "description",
        "landing_page_enabled": "landing_page_enabled",
        "landing_page_title": "landing_page_title",
        "landing_page_description": "landing_page_description",
        "landing_page_image": "landing_page_image",
        "landing_page_theme": "landing_page_theme",
        "custom_url": "custom_url",
        "created_at": "created_at",
        "updated_at": "updated_at",
    },
    Tables.ROLES: {
        "id": "id",
        "event_id": "event_id",
        "name": "name",
        "description": "description",
        "capacity": "capacity",
        "max_capacity": "max_capacity",
        "version": "version",
        "created_at": "created_at",
        "updated_at": "updated_at",
    },
    Tables.VOLUNTEERS: {
        "id": "id",
        "role_id": "role_id",
        "name": "name",
        "email": "email",
        "phone": "phone",
        "description": "description",
        "created_at": "created_at",
        "updated_at": "updated_at",
    },
    Tables.USERS: {
        "id": "id",
        "name": "name",
        "email": "email",
        "image": "image",
        "role": "user_role",
        "email_notifications": "email_notifications",
        "unread_messages": "unread_messages",
        "provider_id": "provider_id",
        "created_at": "created_at",
        "updated_at": "updated_at",
    },
    Tables.MESSAGES: {
        "id": "id",
        "sender_id": "sender_id",
        "recipient_id": "recipient_id",
        "event_id": "event_id",
        "subject": "subject",
        "content": "content",
        "timestamp": "timestamp",
        "read": "read",
    },
}


def _columns(table: str) -> Dict[str, str]:
    try:
        return COLUMNS[table]
    except KeyError:
        raise ValidationError(f"No column map for table {table!r}") from None


def encode(table: str, model: CamelModel) -> Record:
    """Turn a domain model into a storage record for ``table``."""
    columns = _columns(table)
    data = model.model_dump(mode="json", include=set(columns))
    return {columns[field]: value for field, value in data.items()}


def encode_patch(table: str, patch: Dict[str, Any]) -> Record:
    """Rename the attribute keys of a partial update to column names.

    Unknown attributes are rejected rather than silently dropped.
    """
    columns = _columns(table)
    unknown = set(patch) - set(columns)
    if unknown:
        raise ValidationError(f"Unknown fields for {table}: {', '.join(sorted(unknown))}")
    return {columns[field]: value for field, value in patch.items()}


def decode(table: str, record: Record) -> Any:
    """Build the domain model for a storage record of ``table``.

    Columns without a counterpart on the model are ignored.
    """
    columns = _columns(table)
    data = {field: record[column] for field, column in columns.items() if column in record}
    try:
        return MODELS[table].model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {table} record: {exc}", native=exc.errors()) from exc


def encode_settings(settings: SystemSettings, row_id: str) -> Record:
    """The settings singleton is one row whose ``value`` holds every field."""
    return {"id": row_id, "key": SETTINGS_KEY, "value": settings.model_dump(mode="json")}


def decode_settings(row: Record) -> SystemSettings:
    value = row.get("value") or {}
    try:
        return SystemSettings.model_validate(value)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid settings record: {exc}", native=exc.errors()) from exc
