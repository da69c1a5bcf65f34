"""
Process-local read-through cache with a time-to-live per entry.

``TTLCache`` wraps ``cachetools.TLRUCache``.  Each value is stored
together with the ttl it was set with, and the cache's time-to-use
function turns that into an expiry instant, so one cache instance can
hold settings (one hour) next to event lists (five minutes).  Expiry is
checked lazily on read; an expired entry is reported exactly like a
missing one and is never refreshed implicitly.

One instance is shared by every data service.  Services keep their
keys apart with the prefixes defined in ``CacheKeys`` and the lifetimes
in ``CacheTTL``.
"""

import logging
import math
import time
from typing import Any, Callable, Hashable, NamedTuple, Tuple

from cachetools import TLRUCache

logger = logging.getLogger(__name__)


class CacheTTL:
    """Lifetimes in seconds, tuned to how often each entity changes."""

    SETTINGS = 60 * 60
    EVENT_LIST = 5 * 60
    EVENT_DETAIL = 15 * 60
    USER_DETAIL = 30 * 60
    USER_LIST = 5 * 60
    ROLE_LIST = 5 * 60
    ROLE_DETAIL = 15 * 60
    VOLUNTEER_LIST = 5 * 60
    VOLUNTEER_DETAIL = 15 * 60
    MESSAGE_LIST = 5 * 60
    MESSAGE_DETAIL = 15 * 60


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _time_to_use(_key: Hashable, entry: _Entry, now: float) -> float:
    # TLRUCache drops an item once now reaches this value; the entry must
    # still be served at exactly ``set time + ttl``.
    return math.nextafter(now + entry.ttl, math.inf)


class TTLCache:
    """Keyed cache where every entry expires ``ttl`` seconds after ``set``.

    Parameters
    ----------
    maxsize : int
        Upper bound on stored entries; the least recently used entry is
        evicted first once it is reached.
    timer : Callable[[], float]
        Clock used for expiry.  Defaults to ``time.monotonic``; tests
        pass a fake clock they can advance.
    """

    def __init__(self, maxsize: int = 4096, timer: Callable[[], float] = time.monotonic) -> None:
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_time_to_use, timer=timer)

    def get(self, key: str) -> Tuple[Any, bool]:
        """Return ``(value, True)`` for a live entry, ``(None, False)`` otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("cache miss %s", key)
            return None, False
        logger.debug("cache hit %s", key)
        return entry.value, True

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        if ttl <= 0:
            # TLRUCache silently skips already-expired items, which would
            # leave the previous value visible.
            self._entries.pop(key, None)
            return
        self._entries[key] = _Entry(value, ttl)

    def invalidate(self, key: str, prefix: bool = False) -> int:
        """Drop ``key``, or every key starting with it when ``prefix`` is set.

        Returns the number of entries removed.
        """
        if not prefix:
            return 0 if self._entries.pop(key, None) is None else 1
        removed = 0
        for existing in [k for k in list(self._entries) if k.startswith(key)]:
            if self._entries.pop(existing, None) is not None:
                removed += 1
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CacheKeys:
    """Key builders for every cached view of the data."""

    SETTINGS = "settings"
    EVENTS = "events:all"
    USERS = "users:all"
    ROLES = "roles:all"
    VOLUNTEERS = "volunteers:all"
    MESSAGES = "messages:all"

    @staticmethod
    def event(event_id: str) -> str:
        return f"event:{event_id}"

    @staticmethod
    def user(user_id: str) -> str:
        return f"user:{user_id}"

    @staticmethod
    def role(role_id: str) -> str:
        return f"role:{role_id}"

    @staticmethod
    def event_roles(event_id: str) -> str:
        return f"roles:event:{event_id}"

    @staticmethod
    def volunteer(volunteer_id: str) -> str:
        return f"volunteer:{volunteer_id}"

    @staticmethod
    def role_volunteers(role_id: str) -> str:
        return f"volunteers:role:{role_id}"

    @staticmethod
    def message(message_id: str) -> str:
        return f"message:{message_id}"

    @staticmethod
    def user_messages(user_id: str) -> str:
        return f"messages:user:{user_id}"
