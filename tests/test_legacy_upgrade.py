"""Tests for upgrading data directories written by the earlier file server."""

import json
import os

import pytest

from volunteer_hub_api.app.container import Services
from volunteer_hub_api.app.core.config import Settings
from volunteer_hub_api.app.schemas.user import UserRole
from volunteer_hub_api.app.storage.base import Tables
from volunteer_hub_api.app.storage.factory import create_backend
from volunteer_hub_api.app.storage.local import LocalFileBackend


LEGACY_SETTINGS = {
    "googleAuthEnabled": True,
    "emailAuthEnabled": False,
    "organizationName": "Harbour Helpers",
    "primaryColor": "#123456",
}

LEGACY_USERS = [
    {
        "id": "u1",
        "name": "Ada",
        "email": "ada@example.org",
        "userRole": "owner",
        "emailNotifications": False,
        "unreadMessages": 2,
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
    },
    {"id": "u2", "name": "Bob", "email": "bob@example.org", "userRole": "admin", "unreadMessages": 0},
]

LEGACY_EVENTS = [
    {
        "id": "e1",
        "name": "Harbour clean-up",
        "date": "2024-05-04T09:00:00Z",
        "location": "Pier 3",
        "description": "",
        "customUrl": "harbour",
        "landingPageTheme": "dark",
        "roles": [
            {
                "id": "r1",
                "name": "Picker",
                "description": "",
                "capacity": 2,
                "maxCapacity": 3,
                "volunteers": [
                    {
                        "id": "v1",
                        "roleId": "r1",
                        "userId": "",
                        "name": "Cleo",
                        "email": "cleo@example.org",
                        "phone": "",
                        "description": "",
                        "createdAt": "2024-04-01T00:00:00Z",
                        "updatedAt": "2024-04-01T00:00:00Z",
                    }
                ],
            },
            {"id": "r2", "name": "Driver", "description": "", "capacity": 1, "volunteers": []},
        ],
    }
]

LEGACY_MESSAGES = [
    {
        "id": "m1",
        "senderId": "u1",
        "recipientId": "u2",
        "eventId": "e1",
        "subject": "Welcome",
        "content": "Hi Bob",
        "timestamp": "2024-04-02T10:00:00Z",
        "read": False,
    },
    {"id": "m2", "senderId": "u1", "eventId": "e1", "content": "draft", "timestamp": "2024-04-02T11:00:00Z"},
]


def write(data_dir, name, data):
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, name), "w", encoding="utf-8") as f:
        json.dump(data, f)


@pytest.fixture
def legacy_dir(data_dir):
    write(data_dir, "settings.json", LEGACY_SETTINGS)
    write(data_dir, "users.json", LEGACY_USERS)
    write(data_dir, "events.json", LEGACY_EVENTS)
    write(data_dir, "messages.json", LEGACY_MESSAGES)
    return data_dir


def open_services(data_dir, cache):
    backend = create_backend(Settings(data_dir=data_dir, remote_url="", remote_key=""))
    return Services(backend, cache)


async def test_legacy_directory_is_readable_after_start(legacy_dir, cache):
    services = open_services(legacy_dir, cache)

    settings = await services.settings.get()
    assert settings.organization_name == "Harbour Helpers"
    assert settings.google_auth_enabled is True
    assert settings.email_auth_enabled is False

    users = {user.id: user for user in await services.users.list()}
    assert users["u1"].role is UserRole.OWNER
    assert users["u1"].email_notifications is False
    assert users["u1"].unread_messages == 2
    assert users["u2"].role is UserRole.MANAGER

    event = await services.events.find_by_custom_url("harbour")
    assert event.landing_page_theme.value == "dark"
    assert [(role.id, role.capacity, role.max_capacity) for role in event.roles] == [("r1", 2, 3), ("r2", 1, None)]
    assert [volunteer.name for volunteer in event.roles[0].volunteers] == ["Cleo"]

    assert [message.id for message in await services.messages.received("u2")] == ["m1"]


async def test_upgrade_writes_table_documents(legacy_dir, backend):
    assert backend.upgrade_legacy_documents() == [Tables.SETTINGS, Tables.USERS, Tables.MESSAGES, Tables.EVENTS]

    events = await backend.list(Tables.EVENTS)
    assert "roles" not in events[0]
    assert events[0]["custom_url"] == "harbour"
    assert [row["event_id"] for row in await backend.list(Tables.ROLES)] == ["e1", "e1"]
    assert (await backend.get(Tables.VOLUNTEERS, "v1"))["role_id"] == "r1"
    assert (await backend.get(Tables.USERS, "u1"))["user_role"] == "OWNER"
    row = (await backend.list(Tables.SETTINGS))[0]
    assert row["key"] == "settings"
    assert row["value"]["organization_name"] == "Harbour Helpers"


def test_upgrade_is_idempotent(legacy_dir, backend):
    backend.upgrade_legacy_documents()
    with open(os.path.join(legacy_dir, "roles.json"), encoding="utf-8") as f:
        roles_before = f.read()

    assert LocalFileBackend(legacy_dir).upgrade_legacy_documents() == []
    with open(os.path.join(legacy_dir, "roles.json"), encoding="utf-8") as f:
        assert f.read() == roles_before


def test_fresh_directory_needs_no_upgrade(backend, data_dir):
    assert backend.upgrade_legacy_documents() == []
    assert not os.path.exists(data_dir)


async def test_broken_legacy_document_does_not_stop_start(data_dir, cache):
    write(data_dir, "users.json", [{"id": "u1", "userRole": "OWNER", "unreadMessages": -3}])

    services = open_services(data_dir, cache)

    assert (await services.settings.get()).organization_name == "Volunteer Hub"
    with open(os.path.join(data_dir, "users.json"), encoding="utf-8") as f:
        assert json.load(f)[0]["unreadMessages"] == -3
