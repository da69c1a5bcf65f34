"""
Role capacity rules and staffing metrics.

Every role has a minimum headcount (``capacity``) and an optional
ceiling (``max_capacity``, defaulting to the minimum).  A role is
*full* once its volunteers reach the ceiling, and *adequately staffed*
once they reach the minimum.  Fill rates are measured against the
minimum, so an over-staffed role reports more than 100 percent;
``max_fill_rate`` measures against the ceiling instead.

Nothing here performs I/O.  The sign-up flow calls ``ensure_can_join``
before writing, and the role services call ``validate_limits`` before
any role reaches storage.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ..schemas.event import Event
from ..schemas.role import Role
from .errors import RoleFullError, ValidationError


def filled(role: Role) -> int:
    return len(role.volunteers)


def minimum(role: Role) -> int:
    return role.capacity


def ceiling(role: Role) -> int:
    return role.max_capacity if role.max_capacity is not None else role.capacity


def is_full(role: Role) -> bool:
    return filled(role) >= ceiling(role)


def has_reached_minimum(role: Role) -> bool:
    return filled(role) >= minimum(role)


def percentage(part: int, whole: int) -> int:
    """``part / whole`` as a whole percentage, halves rounded up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def fill_rate(role: Role) -> int:
    return percentage(filled(role), minimum(role))


def validate_limits(capacity: int, max_capacity: Optional[int]) -> None:
    """Reject a minimum below one or a ceiling below the minimum.

    Raises
    ------
    ValidationError
        If the limits are inconsistent.
    """
    if capacity is None or capacity < 1:
        raise ValidationError(f"Role capacity must be at least 1, got {capacity}")
    if max_capacity is not None and max_capacity < capacity:
        raise ValidationError(
            f"Maximum capacity {max_capacity} is below the minimum capacity {capacity}"
        )


def ensure_can_join(role: Role) -> None:
    """Raise ``RoleFullError`` when one more volunteer would exceed the ceiling."""
    if is_full(role):
        raise RoleFullError(
            f"Role {role.name!r} is full ({filled(role)}/{ceiling(role)} volunteers)"
        )


@dataclass
class RoleMetrics:
    role_id: str
    name: str
    filled: int
    minimum: int
    ceiling: int
    fill_rate: int
    is_full: bool
    has_reached_minimum: bool


@dataclass
class EventMetrics:
    event_id: str
    name: str
    date: str
    is_past: bool
    total_roles: int = 0
    total_volunteers: int = 0
    total_min_capacity: int = 0
    total_max_capacity: int = 0
    fill_rate: int = 0
    max_fill_rate: int = 0
    fully_staffed_roles: int = 0
    roles_fill_rate: int = 0
    roles: List[RoleMetrics] = field(default_factory=list)


@dataclass
class DashboardMetrics:
    total_events: int = 0
    upcoming_events: int = 0
    past_events: int = 0
    total_roles: int = 0
    total_volunteers: int = 0
    total_min_capacity: int = 0
    total_max_capacity: int = 0
    fill_rate: int = 0
    max_fill_rate: int = 0
    fully_staffed_roles: int = 0
    roles_fill_rate: int = 0
    # Staffing buckets: at the minimum, at half of it, below half.
    fully_staffed: int = 0
    partially_filled: int = 0
    understaffed: int = 0
    events: List[EventMetrics] = field(default_factory=list)


def _parse_date(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_past(event: Event, now: Optional[datetime] = None) -> bool:
    """An event is past once its date lies before ``now``.

    Dates that cannot be parsed count as past.
    """
    now = now or datetime.now(timezone.utc)
    when = _parse_date(event.date)
    return when is None or when < now


def summarize_role(role: Role) -> RoleMetrics:
    return RoleMetrics(
        role_id=role.id,
        name=role.name,
        filled=filled(role),
        minimum=minimum(role),
        ceiling=ceiling(role),
        fill_rate=fill_rate(role),
        is_full=is_full(role),
        has_reached_minimum=has_reached_minimum(role),
    )


def summarize_event(event: Event, now: Optional[datetime] = None) -> EventMetrics:
    metrics = EventMetrics(
        event_id=event.id, name=event.name, date=event.date, is_past=is_past(event, now)
    )
    for role in event.roles:
        role_metrics = summarize_role(role)
        metrics.roles.append(role_metrics)
        metrics.total_roles += 1
        metrics.total_volunteers += role_metrics.filled
        metrics.total_min_capacity += role_metrics.minimum
        metrics.total_max_capacity += role_metrics.ceiling
        if role_metrics.has_reached_minimum:
            metrics.fully_staffed_roles += 1
    metrics.fill_rate = percentage(metrics.total_volunteers, metrics.total_min_capacity)
    metrics.max_fill_rate = percentage(metrics.total_volunteers, metrics.total_max_capacity)
    metrics.roles_fill_rate = percentage(metrics.fully_staffed_roles, metrics.total_roles)
    return metrics


def summarize(events: Iterable[Event], now: Optional[datetime] = None) -> DashboardMetrics:
    """Aggregate staffing metrics over every role of every event."""
    now = now or datetime.now(timezone.utc)
    dashboard = DashboardMetrics()
    for event in events:
        metrics = summarize_event(event, now)
        dashboard.events.append(metrics)
        dashboard.total_events += 1
        if metrics.is_past:
            dashboard.past_events += 1
        else:
            dashboard.upcoming_events += 1
        dashboard.total_roles += metrics.total_roles
        dashboard.total_volunteers += metrics.total_volunteers
        dashboard.total_min_capacity += metrics.total_min_capacity
        dashboard.total_max_capacity += metrics.total_max_capacity
        dashboard.fully_staffed_roles += metrics.fully_staffed_roles
        for role in metrics.roles:
            if role.filled >= role.minimum:
                dashboard.fully_staffed += 1
            elif role.filled >= role.minimum / 2:
                dashboard.partially_filled += 1
            else:
                dashboard.understaffed += 1
    dashboard.fill_rate = percentage(dashboard.total_volunteers, dashboard.total_min_capacity)
    dashboard.max_fill_rate = percentage(dashboard.total_volunteers, dashboard.total_max_capacity)
    dashboard.roles_fill_rate = percentage(dashboard.fully_staffed_roles, dashboard.total_roles)
    return dashboard
