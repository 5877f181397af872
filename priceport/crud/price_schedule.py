from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from priceport.core.pricing.errors import ConflictError, InvalidStateError, NotFoundError
from priceport.core.pricing.lifecycle import ScheduleStatus
from priceport.models.price_schedule import ItemPriceSchedule, customer_scope_key

logger = logging.getLogger(__name__)

IMMUTABLE_AFTER_PENDING = ("item_id", "customer_id", "effective_date")


def _scope_label(item_id: int, customer_id: int | None) -> str:
    who = "global" if customer_id is None else f"customer {customer_id}"
    return f"item {item_id} ({who})"


def find_live_duplicate(
    db: Session,
    *,
    item_id: int,
    customer_id: int | None,
    effective_date: date,
    exclude_id: int | None = None,
) -> ItemPriceSchedule | None:
    stmt = (
        select(ItemPriceSchedule)
        .where(ItemPriceSchedule.item_id == item_id)
        .where(ItemPriceSchedule.customer_scope == customer_scope_key(customer_id))
        .where(ItemPriceSchedule.effective_date == effective_date)
        .where(ItemPriceSchedule.status != ScheduleStatus.CANCELLED.value)
    )
    if exclude_id is not None:
        stmt = stmt.where(ItemPriceSchedule.id != exclude_id)
    return db.execute(stmt.limit(1)).scalars().first()


def _conflict_message(item_id: int, customer_id: int | None, effective_date: date) -> str:
    return (
        f"A schedule for {_scope_label(item_id, customer_id)} "
        f"effective {effective_date.isoformat()} already exists."
    )


def _flush_or_conflict(db: Session, obj: ItemPriceSchedule) -> None:
    try:
        with db.begin_nested():
            db.add(obj)
            db.flush()
    except IntegrityError as e:
        # Lost the race against a concurrent writer: the unique index decides.
        raise ConflictError(
            _conflict_message(obj.item_id, obj.customer_id, obj.effective_date)
        ) from e


def create_price_schedule(db: Session, values: dict[str, Any], actor: str) -> ItemPriceSchedule:
    """
    Stores a new PENDING schedule. `values` must already be validated and
    carry the derived prices.
    """
    existing = find_live_duplicate(
        db,
        item_id=values["item_id"],
        customer_id=values.get("customer_id"),
        effective_date=values["effective_date"],
    )
    if existing is not None:
        raise ConflictError(
            _conflict_message(values["item_id"], values.get("customer_id"), values["effective_date"])
        )

    obj = ItemPriceSchedule(
        item_id=values["item_id"],
        customer_id=values.get("customer_id"),
        customer_scope=customer_scope_key(values.get("customer_id")),
        effective_date=values["effective_date"],
        base_price=values["base_price"],
        discount1_pct=values.get("discount1_pct"),
        price_after_discount1=values["price_after_discount1"],
        discount2_pct=values.get("discount2_pct"),
        price_after_discount2=values["price_after_discount2"],
        tax_pct=values.get("tax_pct"),
        notes=values.get("notes"),
        status=ScheduleStatus.PENDING.value,
        created_by=actor,
        updated_by=actor,
    )
    _flush_or_conflict(db, obj)
    return obj


def get_price_schedule(db: Session, schedule_id: int) -> ItemPriceSchedule:
    obj = db.get(ItemPriceSchedule, schedule_id)
    if obj is None:
        raise NotFoundError(f"Price schedule {schedule_id} not found.")
    return obj


def list_price_schedules_by_item(db: Session, item_id: int) -> list[ItemPriceSchedule]:
    stmt = select(ItemPriceSchedule).where(ItemPriceSchedule.item_id == item_id)
    return list(db.execute(stmt).scalars().all())


def list_price_schedules_by_items(db: Session, item_ids: list[int]) -> list[ItemPriceSchedule]:
    if not item_ids:
        return []
    stmt = select(ItemPriceSchedule).where(ItemPriceSchedule.item_id.in_(sorted(set(item_ids))))
    return list(db.execute(stmt).scalars().all())


def query_price_schedules(
    db: Session,
    *,
    item_id: int | None = None,
    customer_id: int | None = None,
    global_only: bool = False,
    effective_date_from: date | None = None,
    effective_date_to: date | None = None,
    q: str | None = None,
) -> list[ItemPriceSchedule]:
    stmt = select(ItemPriceSchedule).order_by(ItemPriceSchedule.id.desc())

    if item_id is not None:
        stmt = stmt.where(ItemPriceSchedule.item_id == item_id)

    if global_only:
        stmt = stmt.where(ItemPriceSchedule.customer_id.is_(None))
    elif customer_id is not None:
        stmt = stmt.where(ItemPriceSchedule.customer_id == customer_id)

    if effective_date_from is not None:
        stmt = stmt.where(ItemPriceSchedule.effective_date >= effective_date_from)
    if effective_date_to is not None:
        stmt = stmt.where(ItemPriceSchedule.effective_date <= effective_date_to)

    text = (q or "").strip()
    if text:
        stmt = stmt.where(ItemPriceSchedule.notes.ilike(f"%{text}%"))

    return list(db.execute(stmt).scalars().all())


def update_price_schedule(
    db: Session,
    obj: ItemPriceSchedule,
    patch: dict[str, Any],
    *,
    current_status: ScheduleStatus,
    actor: str,
) -> ItemPriceSchedule:
    changed = {k: v for k, v in patch.items() if getattr(obj, k) != v}

    if current_status != ScheduleStatus.PENDING:
        locked = sorted(k for k in changed if k in IMMUTABLE_AFTER_PENDING)
        if locked:
            raise InvalidStateError(
                f"{', '.join(locked)} cannot change once a schedule is "
                f"{ScheduleStatus(current_status).value}."
            )

    if not changed:
        return obj

    scope_changed = any(k in changed for k in IMMUTABLE_AFTER_PENDING)
    item_id = changed.get("item_id", obj.item_id)
    customer_id = changed.get("customer_id", obj.customer_id)
    effective_date = changed.get("effective_date", obj.effective_date)
    if scope_changed and find_live_duplicate(
        db,
        item_id=item_id,
        customer_id=customer_id,
        effective_date=effective_date,
        exclude_id=obj.id,
    ):
        raise ConflictError(_conflict_message(item_id, customer_id, effective_date))

    for k, v in changed.items():
        setattr(obj, k, v)
    obj.customer_scope = customer_scope_key(obj.customer_id)
    obj.updated_by = actor

    _flush_or_conflict(db, obj)
    return obj


def delete_price_schedule(
    db: Session,
    obj: ItemPriceSchedule,
    *,
    current_status: ScheduleStatus,
) -> None:
    """Hard delete. Only PENDING schedules; cancellation is the way to retire the rest."""
    if current_status != ScheduleStatus.PENDING:
        raise InvalidStateError(
            f"Only PENDING schedules can be deleted; schedule {obj.id} is "
            f"{ScheduleStatus(current_status).value}."
        )
    db.delete(obj)
    db.flush()
    logger.info("price_schedule_deleted id=%s item_id=%s", obj.id, obj.item_id)
