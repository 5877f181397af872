from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from priceport.core.pricing import lifecycle
from priceport.core.pricing.errors import InvalidArgumentError, InvalidTransitionError
from priceport.core.pricing.lifecycle import ScheduleStatus


def _schedule(
    schedule_id: int,
    effective_date: date,
    *,
    item_id: int = 1,
    customer_id: int | None = None,
    status: str = "PENDING",
    updated_at: datetime | None = None,
):
    return SimpleNamespace(
        id=schedule_id,
        item_id=item_id,
        customer_id=customer_id,
        effective_date=effective_date,
        status=status,
        updated_at=updated_at,
        cancel_reason=None,
        cancelled_at=None,
        cancelled_by=None,
        updated_by=None,
    )


@pytest.mark.parametrize(
    "current,target",
    [
        (ScheduleStatus.PENDING, ScheduleStatus.ACTIVE),
        (ScheduleStatus.ACTIVE, ScheduleStatus.EXPIRED),
        (ScheduleStatus.PENDING, ScheduleStatus.CANCELLED),
        (ScheduleStatus.ACTIVE, ScheduleStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current, target):
    lifecycle.assert_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (ScheduleStatus.CANCELLED, ScheduleStatus.PENDING),
        (ScheduleStatus.CANCELLED, ScheduleStatus.ACTIVE),
        (ScheduleStatus.EXPIRED, ScheduleStatus.CANCELLED),
        (ScheduleStatus.EXPIRED, ScheduleStatus.ACTIVE),
        (ScheduleStatus.PENDING, ScheduleStatus.EXPIRED),
    ],
)
def test_forbidden_transitions(current, target):
    with pytest.raises(InvalidTransitionError) as exc_info:
        lifecycle.assert_transition(current, target)
    assert exc_info.value.code == "INVALID_TRANSITION"


def test_effective_status_is_date_driven():
    jan = _schedule(1, date(2024, 1, 1))
    mar = _schedule(2, date(2024, 3, 1))
    rows = [jan, mar]

    assert lifecycle.effective_status(jan, rows, date(2023, 12, 31)) == ScheduleStatus.PENDING
    assert lifecycle.effective_status(jan, rows, date(2024, 2, 1)) == ScheduleStatus.ACTIVE
    assert lifecycle.effective_status(mar, rows, date(2024, 2, 1)) == ScheduleStatus.PENDING
    assert lifecycle.effective_status(jan, rows, date(2024, 4, 1)) == ScheduleStatus.EXPIRED
    assert lifecycle.effective_status(mar, rows, date(2024, 4, 1)) == ScheduleStatus.ACTIVE


def test_effective_status_ignores_other_scopes():
    global_row = _schedule(1, date(2024, 1, 1))
    customer_row = _schedule(2, date(2024, 3, 1), customer_id=7)
    other_item = _schedule(3, date(2024, 3, 1), item_id=2)
    rows = [global_row, customer_row, other_item]

    statuses = lifecycle.status_map(rows, date(2024, 6, 1))

    assert statuses == {
        1: ScheduleStatus.ACTIVE,
        2: ScheduleStatus.ACTIVE,
        3: ScheduleStatus.ACTIVE,
    }


def test_cancelled_schedule_hands_activity_back_to_predecessor():
    jan = _schedule(1, date(2024, 1, 1))
    mar = _schedule(2, date(2024, 3, 1), status="CANCELLED")

    statuses = lifecycle.status_map([jan, mar], date(2024, 4, 1))

    assert statuses[1] == ScheduleStatus.ACTIVE
    assert statuses[2] == ScheduleStatus.CANCELLED


def test_same_day_tie_goes_to_latest_update():
    first = _schedule(1, date(2024, 1, 1), updated_at=datetime(2024, 1, 2, 8, 0))
    second = _schedule(2, date(2024, 1, 1), updated_at=datetime(2024, 1, 1, 8, 0))

    statuses = lifecycle.status_map([first, second], date(2024, 1, 5))

    assert statuses[1] == ScheduleStatus.ACTIVE
    assert statuses[2] == ScheduleStatus.EXPIRED


def test_cancel_records_reason_and_actor():
    row = _schedule(1, date(2024, 1, 1))
    at = datetime(2024, 5, 1, 10, 0)

    lifecycle.cancel(
        row,
        current_status=ScheduleStatus.ACTIVE,
        reason="  supplier withdrew offer ",
        actor="buyer@example.com",
        at=at,
    )

    assert row.status == "CANCELLED"
    assert row.cancel_reason == "supplier withdrew offer"
    assert row.cancelled_at == at
    assert row.cancelled_by == "buyer@example.com"
    assert row.updated_by == "buyer@example.com"


def test_cancel_requires_reason_when_configured():
    row = _schedule(1, date(2024, 1, 1))

    with pytest.raises(InvalidArgumentError) as exc_info:
        lifecycle.cancel(
            row,
            current_status=ScheduleStatus.PENDING,
            reason="   ",
            actor="buyer@example.com",
            at=datetime(2024, 5, 1),
            require_reason=True,
        )

    assert exc_info.value.errors[0].field == "reason"
    assert row.status == "PENDING"


def test_cancel_rejects_expired_schedule():
    row = _schedule(1, date(2024, 1, 1))

    with pytest.raises(InvalidTransitionError):
        lifecycle.cancel(
            row,
            current_status=ScheduleStatus.EXPIRED,
            reason=None,
            actor="buyer@example.com",
            at=datetime(2024, 5, 1),
        )
    assert row.status == "PENDING"
