"""Tests for volunteer sign-up and its capacity guarantees."""

import pytest

from volunteer_hub_api.app.core.capacity import filled
from volunteer_hub_api.app.core.errors import ConflictError, NotFoundError, RoleFullError
from volunteer_hub_api.app.schemas.role import VolunteerCreate
from volunteer_hub_api.app.storage.base import Tables

from conftest import make_event, make_role


def form(name: str) -> VolunteerCreate:
    return VolunteerCreate(name=name, email=f"{name.lower()}@example.org")


@pytest.fixture
async def role(services):
    await services.events.save_tree(make_event("e1", [make_role("r1", "e1", capacity=1, max_capacity=2)]))
    return await services.roles.get("r1")


async def test_third_sign_up_is_rejected_at_the_ceiling(services, role):
    await services.signup.sign_up("e1", role.id, form("Ada"))
    await services.signup.sign_up("e1", role.id, form("Grace"))
    with pytest.raises(RoleFullError):
        await services.signup.sign_up("e1", role.id, form("Linus"))

    tree = await services.events.get_tree("e1")
    assert filled(tree.roles[0]) == 2
    assert tree.roles[0].version == 2


async def test_sign_up_for_role_of_another_event_is_not_found(services, role):
    with pytest.raises(NotFoundError):
        await services.signup.sign_up("other", role.id, form("Ada"))


async def test_sign_up_for_unknown_role_is_not_found(services, role):
    with pytest.raises(NotFoundError):
        await services.signup.sign_up("e1", "ghost", form("Ada"))


async def test_concurrent_sign_up_for_last_place_cannot_overfill(services, backend, monkeypatch):
    await services.events.save_tree(make_event("e2", [make_role("last", "e2", capacity=1)]))
    original_list = services.volunteers.list
    raced = []

    async def list_then_race(parent_id=None, fresh=False):
        result = await original_list(parent_id, fresh=fresh)
        if not raced:
            raced.append(True)
            # Another sign-up completes between our capacity check and our write.
            await services.signup.sign_up("e2", "last", form("Quick"))
        return result

    monkeypatch.setattr(services.volunteers, "list", list_then_race)

    with pytest.raises(ConflictError):
        await services.signup.sign_up("e2", "last", form("Slow"))

    rows = await backend.list(Tables.VOLUNTEERS, {"role_id": "last"})
    assert [row["name"] for row in rows] == ["Quick"]
    assert (await backend.get(Tables.ROLES, "last"))["version"] == 1
