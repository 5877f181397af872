"""
Point-in-time schedule selection.

Resolution order (first non-empty partition wins):
1. Customer-specific schedules (customer_id equals the requested customer)
2. Global schedules (customer_id is NULL)

Within a partition only schedules with effective_date <= as_of compete, and
the latest effective_date wins (ties: latest updated_at, then highest id).

Precedence beats recency: a customer override dated 2023 still wins over a
global schedule dated 2024. Cancelled schedules never compete.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from priceport.core.pricing.lifecycle import is_cancelled, recency_key

SCOPE_CUSTOMER = "customer"
SCOPE_GLOBAL = "global"


@dataclass
class Resolution:
    as_of: date
    customer_id: int | None
    selected: object | None = None
    scope: str | None = None
    # Every in-effect candidate per partition, best first.
    customer_candidates: list = field(default_factory=list)
    global_candidates: list = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.selected is not None


def _ranked(schedules: list) -> list:
    return sorted(schedules, key=recency_key, reverse=True)


def partition(schedules: Iterable, customer_id: int | None) -> tuple[list, list]:
    customer_rows: list = []
    global_rows: list = []
    for schedule in schedules:
        if is_cancelled(schedule):
            continue
        if schedule.customer_id is None:
            global_rows.append(schedule)
        elif customer_id is not None and schedule.customer_id == customer_id:
            customer_rows.append(schedule)
    return customer_rows, global_rows


def select_effective_schedule(
    schedules: Iterable,
    as_of: date,
    customer_id: int | None = None,
) -> Resolution:
    customer_rows, global_rows = partition(schedules, customer_id)

    resolution = Resolution(
        as_of=as_of,
        customer_id=customer_id,
        customer_candidates=_ranked([s for s in customer_rows if s.effective_date <= as_of]),
        global_candidates=_ranked([s for s in global_rows if s.effective_date <= as_of]),
    )

    if resolution.customer_candidates:
        resolution.selected = resolution.customer_candidates[0]
        resolution.scope = SCOPE_CUSTOMER
    elif resolution.global_candidates:
        resolution.selected = resolution.global_candidates[0]
        resolution.scope = SCOPE_GLOBAL
    return resolution
