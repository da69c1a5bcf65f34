"""Tests for the inbox visit."""

from volunteer_hub_api.app.schemas.message import RecipientSelector, RecipientType
from volunteer_hub_api.app.storage.base import Tables

from conftest import sign_in


async def test_visit_marks_everything_read_and_resets_counter(services, backend):
    await sign_in(services, "owner")
    reader = await sign_in(services, "reader")
    selector = RecipientSelector(type=RecipientType.INDIVIDUAL, user_id=reader.id)
    for subject in ("one", "two", "three"):
        await services.fanout.send("owner", selector, subject, "body")
    assert (await services.users.get(reader.id, fresh=True)).unread_messages == 3

    inbox = await services.inbox.visit(reader.id)

    assert len(inbox) == 3
    timestamps = [message.timestamp for message in inbox]
    assert timestamps == sorted(timestamps, reverse=True)
    rows = await backend.list(Tables.MESSAGES, {"recipient_id": reader.id})
    assert all(row["read"] for row in rows)
    assert (await backend.get(Tables.USERS, reader.id))["unread_messages"] == 0
    assert await services.messages.unread_for(reader.id) == []


async def test_visit_leaves_other_users_messages_alone(services, backend):
    await sign_in(services, "owner")
    await sign_in(services, "a")
    await sign_in(services, "b")
    await services.fanout.send("owner", RecipientSelector(type=RecipientType.ALL), "Hi", "all")

    inbox = await services.inbox.visit("a")

    assert [message.recipient_id for message in inbox] == ["a"]
    assert [row["read"] for row in await backend.list(Tables.MESSAGES, {"recipient_id": "b"})] == [False]
    assert (await backend.get(Tables.USERS, "b"))["unread_messages"] == 1
