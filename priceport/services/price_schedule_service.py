from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping

from sqlalchemy.orm import Session

from priceport.core.clock import business_today
from priceport.core.config import settings
from priceport.core.flow_logging import flow_info
from priceport.core.pricing import lifecycle
from priceport.core.pricing.cascade import compute_cascade
from priceport.core.pricing.errors import (
    InvalidArgumentError,
    InvalidStateError,
    InvalidTransitionError,
    PricingFailure,
)
from priceport.core.pricing.lifecycle import ScheduleStatus
from priceport.crud.price_schedule import (
    create_price_schedule,
    delete_price_schedule,
    get_price_schedule,
    query_price_schedules,
    update_price_schedule,
)
from priceport.models.mixins import utcnow
from priceport.models.price_schedule import ItemPriceSchedule
from priceport.services.price_schedule_validation import (
    PRICING_FIELDS,
    validate_schedule_create,
    validate_schedule_patch,
)
from priceport.services.schedule_read_cache import ScheduleReadCache

logger = logging.getLogger(__name__)

_CASCADE_INPUTS = ("base_price", "discount1_pct", "discount2_pct")


@dataclass
class ScheduleRecord:
    schedule: ItemPriceSchedule
    status: ScheduleStatus


@dataclass
class SchedulePage:
    total: int
    skip: int
    limit: int
    items: list[ScheduleRecord]


class PriceScheduleService:
    def __init__(
        self,
        db: Session,
        cache: ScheduleReadCache | None = None,
        today: date | None = None,
    ):
        self.db = db
        self.cache = cache or ScheduleReadCache()
        self._today = today

    def today(self) -> date:
        return self._today or business_today()

    def _status_of(self, obj: ItemPriceSchedule) -> ScheduleStatus:
        siblings = self.cache.schedules_for_item(self.db, obj.item_id)
        return lifecycle.effective_status(obj, siblings, self.today())

    def _record(self, obj: ItemPriceSchedule) -> ScheduleRecord:
        return ScheduleRecord(schedule=obj, status=self._status_of(obj))

    def _invalidate(self, *item_ids: int) -> None:
        for item_id in set(item_ids):
            self.cache.invalidate(item_id)

    def get(self, schedule_id: int) -> ScheduleRecord:
        return self._record(get_price_schedule(self.db, schedule_id))

    def create(self, payload: Mapping[str, Any], actor: str) -> ScheduleRecord:
        outcome = validate_schedule_create(payload)
        if not outcome.ok:
            raise InvalidArgumentError(outcome.errors)
        values = outcome.cleaned
        values.pop("status", None)

        cascade = compute_cascade(
            values["base_price"], values.get("discount1_pct"), values.get("discount2_pct")
        )
        values["price_after_discount1"] = cascade.price_after_discount1
        values["price_after_discount2"] = cascade.price_after_discount2

        try:
            obj = create_price_schedule(self.db, values, actor)
        except PricingFailure:
            logger.warning(
                "price_schedule_create_rejected item_id=%s customer_id=%s effective_date=%s user=%s",
                values["item_id"],
                values.get("customer_id"),
                values["effective_date"],
                actor,
            )
            raise
        self._invalidate(obj.item_id)
        flow_info(
            logger,
            "price_schedule_created id=%s item_id=%s customer_id=%s effective_date=%s "
            "base_price=%s final_price=%s user=%s",
            obj.id,
            obj.item_id,
            obj.customer_id,
            obj.effective_date,
            obj.base_price,
            obj.price_after_discount2,
            actor,
            category="pricing_write",
        )
        return self._record(obj)

    def update(self, schedule_id: int, patch: Mapping[str, Any], actor: str) -> ScheduleRecord:
        outcome = validate_schedule_patch(patch)
        if not outcome.ok:
            raise InvalidArgumentError(outcome.errors)
        changes = dict(outcome.cleaned)
        requested_status: ScheduleStatus | None = changes.pop("status", None)

        obj = get_price_schedule(self.db, schedule_id)
        current = self._status_of(obj)
        original_item_id = obj.item_id

        if requested_status is not None and requested_status != current:
            lifecycle.assert_transition(current, requested_status)
            if requested_status != ScheduleStatus.CANCELLED:
                raise InvalidTransitionError(
                    f"{requested_status.value} is reached by effective date and "
                    "cannot be set explicitly."
                )

        if current == ScheduleStatus.CANCELLED:
            if changes:
                raise InvalidStateError(f"Schedule {obj.id} is CANCELLED and can no longer change.")
            return ScheduleRecord(schedule=obj, status=current)

        if current != ScheduleStatus.PENDING:
            locked = sorted(
                k for k in changes if k in PRICING_FIELDS and getattr(obj, k) != changes[k]
            )
            if locked:
                logger.warning(
                    "price_schedule_update_rejected id=%s status=%s fields=%s user=%s",
                    obj.id,
                    current.value,
                    ",".join(locked),
                    actor,
                )
                raise InvalidStateError(
                    f"{', '.join(locked)} cannot change once a schedule is {current.value}; "
                    "create a new schedule instead."
                )

        if any(k in changes for k in _CASCADE_INPUTS):
            cascade = compute_cascade(
                changes.get("base_price", obj.base_price),
                changes.get("discount1_pct", obj.discount1_pct),
                changes.get("discount2_pct", obj.discount2_pct),
            )
            changes["price_after_discount1"] = cascade.price_after_discount1
            changes["price_after_discount2"] = cascade.price_after_discount2

        update_price_schedule(self.db, obj, changes, current_status=current, actor=actor)
        self._invalidate(original_item_id, obj.item_id)

        if requested_status == ScheduleStatus.CANCELLED and current != ScheduleStatus.CANCELLED:
            return self.cancel(obj.id, patch.get("cancel_reason"), actor)

        flow_info(
            logger,
            "price_schedule_updated id=%s fields=%s user=%s",
            obj.id,
            ",".join(sorted(changes)),
            actor,
            category="pricing_write",
        )
        return self._record(obj)

    def cancel(self, schedule_id: int, reason: str | None, actor: str) -> ScheduleRecord:
        obj = get_price_schedule(self.db, schedule_id)
        current = self._status_of(obj)
        try:
            lifecycle.cancel(
                obj,
                current_status=current,
                reason=reason,
                actor=actor,
                at=utcnow(),
                require_reason=settings.PRICE_SCHEDULE_CANCEL_REASON_REQUIRED,
            )
        except (InvalidTransitionError, InvalidArgumentError):
            logger.warning(
                "price_schedule_cancel_rejected id=%s status=%s user=%s",
                obj.id,
                current.value,
                actor,
            )
            raise
        self.db.flush()
        self._invalidate(obj.item_id)
        flow_info(
            logger,
            "price_schedule_cancelled id=%s item_id=%s previous_status=%s reason=%s user=%s",
            obj.id,
            obj.item_id,
            current.value,
            obj.cancel_reason or "-",
            actor,
            category="pricing_write",
        )
        return ScheduleRecord(schedule=obj, status=ScheduleStatus.CANCELLED)

    def delete(self, schedule_id: int) -> None:
        obj = get_price_schedule(self.db, schedule_id)
        current = self._status_of(obj)
        item_id = obj.item_id
        delete_price_schedule(self.db, obj, current_status=current)
        self._invalidate(item_id)

    def list_by_item(self, item_id: int) -> list[ScheduleRecord]:
        rows = self.cache.schedules_for_item(self.db, item_id)
        statuses = lifecycle.status_map(rows, self.today())
        return [ScheduleRecord(schedule=row, status=statuses[row.id]) for row in rows]

    def list(
        self,
        *,
        skip: int = 0,
        limit: int = 50,
        item_id: int | None = None,
        customer_id: int | None = None,
        global_only: bool = False,
        status: ScheduleStatus | None = None,
        effective_date_from: date | None = None,
        effective_date_to: date | None = None,
        q: str | None = None,
    ) -> SchedulePage:
        rows = query_price_schedules(
            self.db,
            item_id=item_id,
            customer_id=customer_id,
            global_only=global_only,
            effective_date_from=effective_date_from,
            effective_date_to=effective_date_to,
            q=q,
        )

        # ACTIVE/EXPIRED depend on sibling rows that the filters may have excluded.
        self.cache.prefetch(self.db, [row.item_id for row in rows])
        siblings: list[ItemPriceSchedule] = []
        for item in sorted({row.item_id for row in rows}):
            siblings.extend(self.cache.schedules_for_item(self.db, item))
        statuses = lifecycle.status_map(siblings, self.today())

        records = [ScheduleRecord(schedule=row, status=statuses[row.id]) for row in rows]
        if status is not None:
            records = [r for r in records if r.status == status]
        return SchedulePage(
            total=len(records),
            skip=skip,
            limit=limit,
            items=records[skip : skip + limit],
        )
