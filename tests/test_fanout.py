"""Tests for message fan-out to recipient groups."""

import pydantic
import pytest

from volunteer_hub_api.app.core.errors import BackendUnavailableError, NotFoundError
from volunteer_hub_api.app.schemas.message import RecipientSelector, RecipientType
from volunteer_hub_api.app.storage.base import Tables

from conftest import make_event, make_role, make_volunteer, sign_in


async def unread_counts(services):
    return {user.id: user.unread_messages for user in await services.users.list(fresh=True)}


async def test_all_reaches_everyone_but_the_sender(services, backend):
    for user_id in ("owner", "u1", "u2", "u3", "u4"):
        await sign_in(services, user_id)

    result = await services.fanout.send(
        "owner", RecipientSelector(type=RecipientType.ALL), "Welcome", "Hello all"
    )

    rows = await backend.list(Tables.MESSAGES)
    assert len(rows) == 4
    assert sorted(row["recipient_id"] for row in rows) == ["u1", "u2", "u3", "u4"]
    assert {(row["subject"], row["content"]) for row in rows} == {("Welcome", "Hello all")}
    assert len({row["timestamp"] for row in rows}) == 1
    assert not any(row["read"] for row in rows)
    assert result.recipient_ids == ["u1", "u2", "u3", "u4"]
    assert result.failed_increments == []
    assert await unread_counts(services) == {"owner": 0, "u1": 1, "u2": 1, "u3": 1, "u4": 1}


async def test_event_recipients_are_joined_by_email_and_deduplicated(services, backend):
    await sign_in(services, "owner")
    helper = await sign_in(services, "helper", email="Helper@Example.org")
    await sign_in(services, "bystander")
    await services.events.save_tree(
        make_event(
            "e1",
            [
                make_role("r1", "e1", volunteers=[make_volunteer("v1", "r1", email="helper@example.org")]),
                make_role(
                    "r2",
                    "e1",
                    capacity=2,
                    volunteers=[
                        make_volunteer("v2", "r2", email="  HELPER@example.org "),
                        make_volunteer("v3", "r2", email="stranger@example.org"),
                    ],
                ),
            ],
        )
    )

    result = await services.fanout.send(
        "owner", RecipientSelector(type=RecipientType.EVENT, event_id="e1"), "Shift", "See you"
    )

    assert result.recipient_ids == [helper.id]
    rows = await backend.list(Tables.MESSAGES)
    assert len(rows) == 1
    assert rows[0]["event_id"] == "e1"


async def test_role_recipients_are_limited_to_the_role(services):
    await sign_in(services, "owner")
    await sign_in(services, "a")
    await sign_in(services, "b")
    await services.events.save_tree(
        make_event(
            "e1",
            [
                make_role("r1", "e1", volunteers=[make_volunteer("v1", "r1", email="a@example.org")]),
                make_role("r2", "e1", volunteers=[make_volunteer("v2", "r2", email="b@example.org")]),
            ],
        )
    )
    selector = RecipientSelector(type=RecipientType.ROLE, event_id="e1", role_id="r2")
    assert await services.fanout.resolve("owner", selector) == ["b"]

    missing = RecipientSelector(type=RecipientType.ROLE, event_id="e1", role_id="nope")
    with pytest.raises(NotFoundError):
        await services.fanout.resolve("owner", missing)


async def test_sending_only_to_oneself_writes_nothing(services, backend):
    await sign_in(services, "owner")
    result = await services.fanout.send(
        "owner", RecipientSelector(type=RecipientType.INDIVIDUAL, user_id="owner"), "Note", "To self"
    )
    assert result.recipient_ids == []
    assert result.messages == []
    assert await backend.list(Tables.MESSAGES) == []


async def test_failed_batch_touches_no_counter(services, monkeypatch):
    for user_id in ("owner", "u1", "u2"):
        await sign_in(services, user_id)

    async def unavailable(*args, **kwargs):
        raise BackendUnavailableError("down")

    monkeypatch.setattr(services.backend, "insert_many", unavailable)
    with pytest.raises(BackendUnavailableError):
        await services.fanout.send("owner", RecipientSelector(type=RecipientType.ALL), "S", "C")
    assert await unread_counts(services) == {"owner": 0, "u1": 0, "u2": 0}


async def test_failed_increment_is_reported_and_others_continue(services, monkeypatch):
    for user_id in ("owner", "u1", "u2", "u3"):
        await sign_in(services, user_id)
    original = services.users.increment_unread

    async def flaky(user_id):
        if user_id == "u2":
            raise BackendUnavailableError("down")
        return await original(user_id)

    monkeypatch.setattr(services.users, "increment_unread", flaky)
    result = await services.fanout.send("owner", RecipientSelector(type=RecipientType.ALL), "S", "C")

    assert len(result.messages) == 3
    assert result.failed_increments == ["u2"]
    assert await unread_counts(services) == {"owner": 0, "u1": 1, "u2": 0, "u3": 1}


def test_selector_requires_the_ids_of_its_type():
    with pytest.raises(pydantic.ValidationError):
        RecipientSelector(type=RecipientType.INDIVIDUAL)
    with pytest.raises(pydantic.ValidationError):
        RecipientSelector(type=RecipientType.ROLE, event_id="e1")
    assert RecipientSelector.model_validate({"type": "event", "eventId": "e1"}).event_id == "e1"
