"""
Price schedule lifecycle.

    PENDING -> ACTIVE -> EXPIRED
    PENDING -> CANCELLED
    ACTIVE  -> CANCELLED

Only PENDING (initial) and CANCELLED (terminal, explicit user action) are
persisted facts. ACTIVE and EXPIRED depend on the calendar and on the other
schedules of the same scope, so they are derived on demand for a given
`as_of` date instead of being maintained by a job:

- effective_date > as_of                          -> PENDING
- authoritative schedule of its scope at as_of    -> ACTIVE
- superseded by a later schedule of its scope     -> EXPIRED

A scope is (item_id, customer_id); customer_id None is the global scope.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime
from enum import Enum

from priceport.core.pricing.errors import FieldError, InvalidArgumentError, InvalidTransitionError


class ScheduleStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


ALLOWED_TRANSITIONS: dict[ScheduleStatus, frozenset[ScheduleStatus]] = {
    ScheduleStatus.PENDING: frozenset({ScheduleStatus.ACTIVE, ScheduleStatus.CANCELLED}),
    ScheduleStatus.ACTIVE: frozenset({ScheduleStatus.EXPIRED, ScheduleStatus.CANCELLED}),
    ScheduleStatus.EXPIRED: frozenset(),
    ScheduleStatus.CANCELLED: frozenset(),
}


def can_transition(current: ScheduleStatus, target: ScheduleStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def assert_transition(current: ScheduleStatus, target: ScheduleStatus) -> None:
    current = ScheduleStatus(current)
    target = ScheduleStatus(target)
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Transition {current.value} -> {target.value} is not allowed."
        )


def is_cancelled(schedule) -> bool:
    return ScheduleStatus(schedule.status) == ScheduleStatus.CANCELLED


def scope_of(schedule) -> tuple[int, int | None]:
    return (schedule.item_id, schedule.customer_id)


def recency_key(schedule) -> tuple:
    """Sort key, larger wins: latest effective_date, then latest update, then id."""
    updated_at = schedule.updated_at or datetime.min
    return (schedule.effective_date, updated_at, schedule.id or 0)


def authoritative(schedules: Iterable, as_of: date):
    """Latest non-cancelled schedule that has taken effect by `as_of`, or None."""
    candidates = [
        s for s in schedules if not is_cancelled(s) and s.effective_date <= as_of
    ]
    if not candidates:
        return None
    return max(candidates, key=recency_key)


def effective_status(schedule, scope_schedules: Iterable, as_of: date) -> ScheduleStatus:
    if is_cancelled(schedule):
        return ScheduleStatus.CANCELLED
    if schedule.effective_date > as_of:
        return ScheduleStatus.PENDING
    same_scope = [s for s in scope_schedules if scope_of(s) == scope_of(schedule)]
    if not any(s is schedule for s in same_scope):
        same_scope.append(schedule)
    winner = authoritative(same_scope, as_of)
    if winner is schedule:
        return ScheduleStatus.ACTIVE
    return ScheduleStatus.EXPIRED


def status_map(schedules: Iterable, as_of: date) -> dict[int, ScheduleStatus]:
    """Effective status of every schedule, keyed by id. Input may mix scopes."""
    by_scope: dict[tuple, list] = defaultdict(list)
    for schedule in schedules:
        by_scope[scope_of(schedule)].append(schedule)

    statuses: dict[int, ScheduleStatus] = {}
    for scope_rows in by_scope.values():
        winner = authoritative(scope_rows, as_of)
        for schedule in scope_rows:
            if is_cancelled(schedule):
                statuses[schedule.id] = ScheduleStatus.CANCELLED
            elif schedule.effective_date > as_of:
                statuses[schedule.id] = ScheduleStatus.PENDING
            elif schedule is winner:
                statuses[schedule.id] = ScheduleStatus.ACTIVE
            else:
                statuses[schedule.id] = ScheduleStatus.EXPIRED
    return statuses


def cancel(
    schedule,
    *,
    current_status: ScheduleStatus,
    reason: str | None,
    actor: str,
    at: datetime,
    require_reason: bool = False,
) -> None:
    """Apply the explicit -> CANCELLED transition in place."""
    assert_transition(current_status, ScheduleStatus.CANCELLED)
    cleaned = (reason or "").strip() or None
    if require_reason and not cleaned:
        raise InvalidArgumentError(
            [FieldError("reason", "required", "Cancellation reason is required.")]
        )
    schedule.status = ScheduleStatus.CANCELLED.value
    schedule.cancel_reason = cleaned
    schedule.cancelled_at = at
    schedule.cancelled_by = actor
    schedule.updated_by = actor
