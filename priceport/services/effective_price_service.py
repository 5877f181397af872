"""
Point-in-time price lookup for order entry.

Reads only: nothing here writes to the store or persists derived statuses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from priceport.core.clock import business_today
from priceport.core.flow_logging import flow_info
from priceport.core.pricing import lifecycle
from priceport.core.pricing.cascade import compute_cascade
from priceport.core.pricing.errors import InvalidArgumentError, NotFoundError
from priceport.core.pricing.resolution import Resolution, select_effective_schedule
from priceport.core.pricing.value_objects import SOURCE_BASE, SOURCE_SCHEDULED, EffectivePrice
from priceport.models.item_price import ItemPrice
from priceport.models.price_schedule import ItemPriceSchedule
from priceport.services.schedule_read_cache import ScheduleReadCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceLine:
    item_id: int
    as_of: date | None = None
    customer_id: int | None = None


def _from_schedule(
    schedule: ItemPriceSchedule, resolution: Resolution, item_id: int
) -> EffectivePrice:
    return EffectivePrice(
        item_id=item_id,
        customer_id=resolution.customer_id,
        as_of=resolution.as_of,
        base_price=schedule.base_price,
        discount1_pct=schedule.discount1_pct,
        discount2_pct=schedule.discount2_pct,
        price_after_discount1=schedule.price_after_discount1,
        price_after_discount2=schedule.price_after_discount2,
        tax_pct=schedule.tax_pct,
        source=SOURCE_SCHEDULED,
        scope=resolution.scope,
        schedule_id=schedule.id,
        effective_date=schedule.effective_date,
    )


def _from_item_price(record: ItemPrice, as_of: date, customer_id: int | None) -> EffectivePrice:
    cascade = compute_cascade(record.base_price, record.discount1_pct, record.discount2_pct)
    return EffectivePrice(
        item_id=record.item_id,
        customer_id=customer_id,
        as_of=as_of,
        base_price=record.base_price,
        discount1_pct=record.discount1_pct,
        discount2_pct=record.discount2_pct,
        price_after_discount1=cascade.price_after_discount1,
        price_after_discount2=cascade.price_after_discount2,
        tax_pct=record.tax_pct,
        source=SOURCE_BASE,
        scope=SOURCE_BASE,
    )


class EffectivePriceService:
    def __init__(self, db: Session, cache: ScheduleReadCache | None = None):
        self.db = db
        self.cache = cache or ScheduleReadCache()

    def _resolution(self, item_id: int, as_of: date, customer_id: int | None) -> Resolution:
        schedules = self.cache.schedules_for_item(self.db, item_id)
        return select_effective_schedule(schedules, as_of, customer_id)

    def resolve(
        self, item_id: int, as_of: date | None = None, customer_id: int | None = None
    ) -> EffectivePrice | None:
        """Scheduled price in effect on `as_of`, or None when no schedule applies."""
        as_of = as_of or business_today()
        resolution = self._resolution(item_id, as_of, customer_id)
        if not resolution.found:
            flow_info(
                logger,
                "price_resolve_miss item_id=%s customer_id=%s as_of=%s",
                item_id,
                customer_id,
                as_of,
                category="pricing_resolve",
            )
            return None

        price = _from_schedule(resolution.selected, resolution, item_id)
        flow_info(
            logger,
            "price_resolve_hit item_id=%s customer_id=%s as_of=%s schedule_id=%s scope=%s final_price=%s",
            item_id,
            customer_id,
            as_of,
            price.schedule_id,
            price.scope,
            price.price_after_discount2,
            category="pricing_resolve",
        )
        return price

    def base_price(self, item_id: int) -> ItemPrice | None:
        stmt = select(ItemPrice).where(ItemPrice.item_id == item_id)
        return self.db.execute(stmt).scalars().first()

    def resolve_with_fallback(
        self, item_id: int, as_of: date | None = None, customer_id: int | None = None
    ) -> EffectivePrice:
        as_of = as_of or business_today()
        price = self.resolve(item_id, as_of, customer_id)
        if price is not None:
            return price
        fallback = self._fallback_price(item_id, as_of, customer_id)
        if fallback is None:
            raise NotFoundError(
                f"No price applies to item {item_id} on {as_of.isoformat()}."
            )
        return fallback

    def _fallback_price(
        self, item_id: int, as_of: date, customer_id: int | None
    ) -> EffectivePrice | None:
        """Price from the item master, or None when there is no usable base record."""
        record = self.base_price(item_id)
        if record is None:
            return None
        try:
            return _from_item_price(record, as_of, customer_id)
        except InvalidArgumentError as exc:
            logger.warning(
                "price_base_record_unusable item_id=%s base_price=%s reason=%s",
                item_id,
                record.base_price,
                exc.message,
            )
            return None

    def resolve_lines(
        self, lines: list[PriceLine], *, fallback: bool = True
    ) -> list[EffectivePrice | None]:
        """
        Resolves many order lines against one schedule read.

        Lines without a price come back as None, in their original position.
        """
        self.cache.prefetch(self.db, [line.item_id for line in lines])
        today = business_today()
        out: list[EffectivePrice | None] = []
        for line in lines:
            as_of = line.as_of or today
            if fallback:
                try:
                    out.append(self.resolve_with_fallback(line.item_id, as_of, line.customer_id))
                except NotFoundError:
                    out.append(None)
            else:
                out.append(self.resolve(line.item_id, as_of, line.customer_id))
        return out

    def explain(
        self, item_id: int, as_of: date | None = None, customer_id: int | None = None
    ) -> dict:
        as_of = as_of or business_today()
        schedules = self.cache.schedules_for_item(self.db, item_id)
        resolution = select_effective_schedule(schedules, as_of, customer_id)
        statuses = lifecycle.status_map(schedules, as_of)

        price: EffectivePrice | None
        if resolution.found:
            price = _from_schedule(resolution.selected, resolution, item_id)
        else:
            price = self._fallback_price(item_id, as_of, customer_id)

        def _candidate(schedule: ItemPriceSchedule, scope: str) -> dict:
            return {
                "schedule_id": schedule.id,
                "scope": scope,
                "customer_id": schedule.customer_id,
                "effective_date": schedule.effective_date.isoformat(),
                "price_after_discount2": str(schedule.price_after_discount2),
                "status": statuses[schedule.id].value,
                "selected": schedule is resolution.selected,
            }

        candidates = [_candidate(s, "customer") for s in resolution.customer_candidates]
        candidates += [_candidate(s, "global") for s in resolution.global_candidates]

        if price is not None:
            explanation = price.explain()
        else:
            explanation = "No applicable price found"

        return {
            "price": price,
            "candidates": candidates,
            "explanation": explanation,
            "context": {
                "item_id": item_id,
                "customer_id": customer_id,
                "as_of": as_of.isoformat(),
            },
        }
