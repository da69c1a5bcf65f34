"""
Test configuration and fixtures.

Provides:
- A fake clock driving the TTL cache
- A local file backend in a temporary data directory
- A freshly composed service container per test
- A FastAPI TestClient bound to that container
"""

from typing import List

import pytest
from fastapi.testclient import TestClient

from volunteer_hub_api.app.container import Services
from volunteer_hub_api.app.core.cache import TTLCache
from volunteer_hub_api.app.core.config import Settings
from volunteer_hub_api.app.main import create_app
from volunteer_hub_api.app.schemas.event import Event
from volunteer_hub_api.app.schemas.role import Role, Volunteer
from volunteer_hub_api.app.schemas.user import SignIn, User
from volunteer_hub_api.app.storage.local import LocalFileBackend


class FakeClock:
    """Monotonic clock the tests move forward by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def data_dir(tmp_path) -> str:
    return str(tmp_path / "data")


@pytest.fixture
def backend(data_dir) -> LocalFileBackend:
    return LocalFileBackend(data_dir)


@pytest.fixture
def cache(clock) -> TTLCache:
    return TTLCache(maxsize=1024, timer=clock)


@pytest.fixture
def services(backend, cache) -> Services:
    return Services(backend, cache)


@pytest.fixture
def client(services, data_dir) -> TestClient:
    app = create_app(Settings(data_dir=data_dir, remote_url="", remote_key=""), services=services)
    return TestClient(app)


# =============================================================================
# Builders
# =============================================================================

def make_volunteer(volunteer_id: str, role_id: str, email: str = "", name: str = "") -> Volunteer:
    return Volunteer(
        id=volunteer_id,
        role_id=role_id,
        name=name or volunteer_id.title(),
        email=email or f"{volunteer_id}@example.org",
    )


def make_role(
    role_id: str,
    event_id: str,
    capacity: int = 1,
    max_capacity=None,
    volunteers: List[Volunteer] = (),
) -> Role:
    return Role(
        id=role_id,
        event_id=event_id,
        name=role_id.title(),
        capacity=capacity,
        max_capacity=max_capacity,
        volunteers=list(volunteers),
    )


def make_event(event_id: str, roles: List[Role] = (), date: str = "2999-06-01T09:00:00Z", **fields) -> Event:
    return Event(id=event_id, name=f"Event {event_id}", date=date, roles=list(roles), **fields)


async def sign_in(services: Services, user_id: str, email: str = "", name: str = "") -> User:
    return await services.users.sign_in(
        SignIn(id=user_id, name=name or user_id.title(), email=email or f"{user_id}@example.org")
    )
