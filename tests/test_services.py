"""Tests for the cache-aside data services."""

import pytest

from volunteer_hub_api.app.core.cache import CacheKeys, CacheTTL
from volunteer_hub_api.app.core.errors import (
    BackendUnavailableError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from volunteer_hub_api.app.schemas.event import EventCreate, EventUpdate
from volunteer_hub_api.app.schemas.settings import SystemSettings
from volunteer_hub_api.app.storage.base import Tables

from conftest import make_event, make_role, make_volunteer


def new_event(name: str, **fields) -> EventCreate:
    return EventCreate(name=name, date="2999-01-01T10:00:00Z", **fields)


async def test_list_is_served_from_cache_until_it_expires(services, backend, clock):
    first = await services.events.create(new_event("First"))
    assert [event.id for event in await services.events.list()] == [first.id]

    # Written behind the service's back: invisible until the list expires.
    await backend.insert(Tables.EVENTS, {"id": "sneaky", "name": "Sneaky", "date": "2999-01-01"})
    assert len(await services.events.list()) == 1
    assert len(await services.events.list(fresh=True)) == 2

    await backend.insert(Tables.EVENTS, {"id": "later", "name": "Later", "date": "2999-01-01"})
    clock.advance(CacheTTL.EVENT_LIST + 1)
    assert len(await services.events.list()) == 3


async def test_list_caches_every_item(services, backend):
    created = await services.events.create(new_event("First"))
    services.cache.clear()
    await services.events.list()
    cached, found = services.cache.get(CacheKeys.event(created.id))
    assert found and cached.name == "First"


async def test_create_appends_to_cached_list_only(services):
    await services.events.create(new_event("First"))
    assert services.cache.get(CacheKeys.EVENTS) == (None, False)

    await services.events.list()
    second = await services.events.create(new_event("Second"))
    cached, found = services.cache.get(CacheKeys.EVENTS)
    assert found
    assert [event.name for event in cached] == ["First", "Second"]
    assert services.cache.get(CacheKeys.event(second.id))[0] == second


async def test_update_replaces_item_in_place(services):
    a = await services.events.create(new_event("A"))
    await services.events.create(new_event("B"))
    await services.events.list()

    updated = await services.events.update(a.id, EventUpdate(location="Park"))
    assert updated.location == "Park"
    assert updated.name == "A"
    cached, _ = services.cache.get(CacheKeys.EVENTS)
    assert [(event.name, event.location) for event in cached] == [("A", "Park"), ("B", "")]


async def test_delete_removes_item_from_cache(services):
    a = await services.events.create(new_event("A"))
    await services.events.list()
    await services.events.delete(a.id)
    assert await services.events.list() == []
    assert services.cache.get(CacheKeys.event(a.id)) == (None, False)
    with pytest.raises(NotFoundError):
        await services.events.get(a.id)


async def test_failed_write_leaves_cache_untouched(services, monkeypatch):
    a = await services.events.create(new_event("A"))
    await services.events.list()
    before = services.cache.get(CacheKeys.EVENTS)

    async def unavailable(*args, **kwargs):
        raise BackendUnavailableError("down")

    monkeypatch.setattr(services.backend, "update", unavailable)
    monkeypatch.setattr(services.backend, "delete", unavailable)
    with pytest.raises(BackendUnavailableError):
        await services.events.update(a.id, {"name": "Renamed"})
    with pytest.raises(BackendUnavailableError):
        await services.events.delete(a.id)

    assert services.cache.get(CacheKeys.EVENTS) == before
    assert (await services.events.get(a.id)).name == "A"


async def test_custom_url_must_be_unique(services):
    await services.events.create(new_event("Gala", custom_url="gala"))
    other = await services.events.create(new_event("Fair"))
    with pytest.raises(ConflictError):
        await services.events.create(new_event("Copy", custom_url="gala"))
    with pytest.raises(ConflictError):
        await services.events.update(other.id, {"custom_url": "gala"})
    assert (await services.events.find_by_custom_url("gala")).name == "Gala"


async def test_role_limits_are_checked_before_io(services, backend):
    event = await services.events.create(new_event("E"))
    with pytest.raises(ValidationError):
        await services.roles.create({"event_id": event.id, "name": "R", "capacity": 3, "max_capacity": 2})
    with pytest.raises(ValidationError):
        await services.roles.create({"event_id": event.id, "name": "R", "capacity": 0})
    assert await backend.list(Tables.ROLES) == []

    role = await services.roles.create({"event_id": event.id, "name": "R", "capacity": 2})
    assert role.version == 0
    with pytest.raises(ValidationError):
        await services.roles.update(role.id, {"max_capacity": 1})


async def test_role_moving_to_another_event_drops_old_list(services):
    e1 = await services.events.create(new_event("E1"))
    e2 = await services.events.create(new_event("E2"))
    role = await services.roles.create({"event_id": e1.id, "name": "R"})
    await services.roles.list(e1.id)
    await services.roles.list(e2.id)

    await services.roles.update(role.id, {"event_id": e2.id})

    assert services.cache.get(CacheKeys.event_roles(e1.id)) == (None, False)
    assert [r.id for r in await services.roles.list(e2.id)] == [role.id]
    assert await services.roles.list(e1.id) == []


async def test_save_tree_writes_and_prunes_children(services, backend):
    tree = make_event(
        "e1",
        [
            make_role("r1", "e1", capacity=1, max_capacity=2, volunteers=[make_volunteer("v1", "r1")]),
            make_role("r2", "e1", volunteers=[make_volunteer("v2", "r2")]),
        ],
    )
    saved = await services.events.save_tree(tree)
    assert [role.id for role in saved.roles] == ["r1", "r2"]
    assert [v.id for v in saved.roles[0].volunteers] == ["v1"]

    pruned = tree.model_copy(update={"roles": [tree.roles[0].model_copy(update={"volunteers": []})]})
    saved = await services.events.save_tree(pruned)
    assert [role.id for role in saved.roles] == ["r1"]
    assert saved.roles[0].volunteers == []
    assert saved.roles[0].version == 1
    assert await backend.list(Tables.VOLUNTEERS) == []
    assert [row["id"] for row in await backend.list(Tables.ROLES)] == ["r1"]


async def test_save_tree_rejects_overfilled_role(services, backend):
    tree = make_event(
        "e1",
        [make_role("r1", "e1", capacity=1, volunteers=[make_volunteer("v1", "r1"), make_volunteer("v2", "r1")])],
    )
    with pytest.raises(ValidationError):
        await services.events.save_tree(tree)
    assert await backend.list(Tables.EVENTS) == []


async def test_delete_event_cascades(services, backend):
    tree = make_event("e1", [make_role("r1", "e1", volunteers=[make_volunteer("v1", "r1")])])
    await services.events.save_tree(tree)
    await services.events.list_trees()

    await services.events.delete("e1")

    for table in (Tables.EVENTS, Tables.ROLES, Tables.VOLUNTEERS):
        assert await backend.list(table) == []
    assert await services.events.list_trees() == []
    assert await services.roles.list("e1") == []


async def test_settings_default_then_saved(services, backend):
    defaults = await services.settings.get()
    assert defaults == SystemSettings()
    assert defaults.organization_name == "Volunteer Hub"
    assert await backend.list(Tables.SETTINGS) == []

    saved = await services.settings.save(SystemSettings(organization_name="Helpers"))
    assert saved.organization_name == "Helpers"
    await services.settings.save(SystemSettings(organization_name="Helpers 2"))
    rows = await backend.list(Tables.SETTINGS)
    assert len(rows) == 1
    assert rows[0]["value"]["organization_name"] == "Helpers 2"
    assert (await services.settings.get()).organization_name == "Helpers 2"


async def test_settings_are_cached_for_an_hour(services, backend, clock):
    await services.settings.get()
    await backend.insert(
        Tables.SETTINGS, {"id": "s1", "key": "settings", "value": {"organization_name": "Elsewhere"}}
    )
    assert (await services.settings.get()).organization_name == "Volunteer Hub"
    clock.advance(CacheTTL.SETTINGS + 1)
    assert (await services.settings.get()).organization_name == "Elsewhere"
