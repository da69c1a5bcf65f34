"""
Composition of the data layer.

``Services`` builds one cache and one backend and hands the same
instances to every service.  ``create_app`` builds it once per
application and stores it on ``app.state.services``; tests build their
own with a temporary data directory and a fake clock.
"""

import time
from typing import Callable, Optional

from fastapi import Request

from .core.cache import TTLCache
from .core.config import Settings
from .storage.base import StorageBackend
from .storage.factory import create_backend
from .services.event_service import EventService
from .services.fanout_service import FanoutService
from .services.inbox_service import InboxService
from .services.message_service import MessageService
from .services.role_service import RoleService
from .services.settings_service import SettingsService
from .services.signup_service import SignupService
from .services.user_service import UserService
from .services.volunteer_service import VolunteerService


class Services:
    """Every service of the data layer, sharing one backend and one cache."""

    def __init__(self, backend: StorageBackend, cache: TTLCache) -> None:
        self.backend = backend
        self.cache = cache
        self.volunteers = VolunteerService(backend, cache)
        self.roles = RoleService(backend, cache, self.volunteers)
        self.events = EventService(backend, cache, self.roles, self.volunteers)
        self.users = UserService(backend, cache)
        self.messages = MessageService(backend, cache)
        self.settings = SettingsService(backend, cache)
        self.signup = SignupService(self.roles, self.volunteers)
        self.fanout = FanoutService(self.users, self.events, self.messages)
        self.inbox = InboxService(self.users, self.messages)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        timer: Optional[Callable[[], float]] = None,
    ) -> "Services":
        cache = TTLCache(maxsize=settings.cache_max_entries, timer=timer or time.monotonic)
        return cls(create_backend(settings), cache)


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the application's ``Services``."""
    return request.app.state.services
