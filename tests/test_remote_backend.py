"""Tests for the PostgREST backend against a stub ``requests`` session."""

import json

import pytest
import requests

from volunteer_hub_api.app.core.errors import (
    BackendUnavailableError,
    ConflictError,
    NotFoundError,
    ReferentialError,
    ValidationError,
)
from volunteer_hub_api.app.storage.base import Tables
from volunteer_hub_api.app.storage.remote import RemoteBackend


class StubResponse:
    def __init__(self, status_code: int = 200, body=None) -> None:
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode("utf-8")
        self.text = self.content.decode("utf-8")

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class StubSession:
    """Records requests and answers them from a prepared queue."""

    def __init__(self, *responses) -> None:
        self.headers = {}
        self.calls = []
        self.responses = list(responses)

    def request(self, **kwargs):
        self.calls.append(kwargs)
        answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


def make_backend(*responses):
    session = StubSession(*responses)
    return RemoteBackend("https://project.example.co/", "anon-key", timeout=7, session=session), session


def test_session_carries_project_key():
    _, session = make_backend()
    assert session.headers["apikey"] == "anon-key"
    assert session.headers["Authorization"] == "Bearer anon-key"


async def test_list_sends_equality_filters():
    backend, session = make_backend(StubResponse(body=[{"id": "r1"}]))
    rows = await backend.list(Tables.ROLES, {"event_id": "e1", "read": False})
    assert rows == [{"id": "r1"}]
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://project.example.co/rest/v1/roles"
    assert call["params"] == {"select": "*", "event_id": "eq.e1", "read": "eq.false"}
    assert call["timeout"] == 7


async def test_get_without_rows_is_not_found():
    backend, _ = make_backend(StubResponse(body=[]))
    with pytest.raises(NotFoundError):
        await backend.get(Tables.USERS, "ghost")


async def test_insert_asks_for_representation():
    backend, session = make_backend(StubResponse(201, [{"id": "u1", "name": "A"}]))
    assert await backend.insert(Tables.USERS, {"id": "u1", "name": "A"}) == {"id": "u1", "name": "A"}
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["headers"]["Prefer"] == "return=representation"


async def test_upsert_merges_duplicates_in_one_request():
    records = [{"id": "u1"}, {"id": "u2"}]
    backend, session = make_backend(StubResponse(201, records))
    assert await backend.upsert(Tables.USERS, records) == records
    assert len(session.calls) == 1
    assert "resolution=merge-duplicates" in session.calls[0]["headers"]["Prefer"]
    assert session.calls[0]["json"] == records


@pytest.mark.parametrize(
    "code, error_class",
    [
        ("23505", ConflictError),
        ("23503", ReferentialError),
        ("PGRST116", NotFoundError),
        ("23514", ValidationError),
        ("22P02", ValidationError),
    ],
)
async def test_native_codes_are_translated(code, error_class):
    body = {"code": code, "message": "boom", "details": None, "hint": None}
    backend, _ = make_backend(StubResponse(409 if code.startswith("23") else 400, body))
    with pytest.raises(error_class) as excinfo:
        await backend.insert(Tables.EVENTS, {"id": "e1"})
    assert excinfo.value.native == body
    assert isinstance(excinfo.value.__cause__, requests.HTTPError)


async def test_server_errors_are_backend_unavailable():
    backend, _ = make_backend(StubResponse(503, {"message": "down"}))
    with pytest.raises(BackendUnavailableError):
        await backend.list(Tables.EVENTS)


async def test_transport_errors_are_backend_unavailable():
    backend, _ = make_backend(requests.ConnectionError("refused"))
    with pytest.raises(BackendUnavailableError) as excinfo:
        await backend.list(Tables.EVENTS)
    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


async def test_conditional_update_filters_on_version():
    backend, session = make_backend(StubResponse(body=[{"id": "r1", "version": 4}]))
    updated = await backend.update(Tables.ROLES, "r1", {"version": 4}, expected_version=3)
    assert updated["version"] == 4
    assert session.calls[0]["method"] == "PATCH"
    assert session.calls[0]["params"] == {"id": "eq.r1", "version": "eq.3"}


async def test_conditional_update_on_moved_version_is_conflict():
    backend, _ = make_backend(StubResponse(body=[]), StubResponse(body=[{"id": "r1", "version": 5}]))
    with pytest.raises(ConflictError):
        await backend.update(Tables.ROLES, "r1", {"version": 4}, expected_version=3)


async def test_conditional_update_on_missing_row_is_not_found():
    backend, _ = make_backend(StubResponse(body=[]), StubResponse(body=[]))
    with pytest.raises(NotFoundError):
        await backend.update(Tables.ROLES, "r1", {"version": 4}, expected_version=3)


async def test_delete_of_missing_row_is_not_found():
    backend, _ = make_backend(StubResponse(body=[]))
    with pytest.raises(NotFoundError):
        await backend.delete(Tables.USERS, "ghost")
