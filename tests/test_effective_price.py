from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from priceport.core.pricing.errors import NotFoundError
from priceport.models.item_price import ItemPrice
from priceport.services.effective_price_service import EffectivePriceService, PriceLine
from priceport.services.price_schedule_service import PriceScheduleService
from priceport.services.schedule_read_cache import ScheduleReadCache


def _seed(db_session, **payload):
    base = {"item_id": 1, "base_price": "12000"}
    base.update(payload)
    record = PriceScheduleService(db_session, today=date(2024, 1, 1)).create(base, "seed@example.com")
    db_session.commit()
    return record.schedule


def test_resolve_returns_none_without_schedules(db_session):
    assert EffectivePriceService(db_session).resolve(1, date(2024, 6, 1)) is None


def test_resolve_single_global_schedule(db_session):
    row = _seed(db_session, effective_date="2024-01-01", discount1_pct="5", discount2_pct="2", tax_pct="11")

    price = EffectivePriceService(db_session).resolve(1, date(2024, 6, 1))

    assert price.source == "scheduled"
    assert price.scope == "global"
    assert price.schedule_id == row.id
    assert price.base_price == Decimal("12000.00")
    assert price.price_after_discount1 == Decimal("11400.00")
    assert price.price_after_discount2 == Decimal("11172.00")
    assert price.tax_pct == Decimal("11.00")
    assert price.effective_date == date(2024, 1, 1)


def test_resolve_prefers_customer_override(db_session):
    _seed(db_session, effective_date="2024-01-01")
    override = _seed(db_session, effective_date="2023-01-01", customer_id=5, base_price="9000")

    price = EffectivePriceService(db_session).resolve(1, date(2024, 6, 1), customer_id=5)

    assert price.schedule_id == override.id
    assert price.scope == "customer"
    assert price.customer_id == 5


def test_resolve_skips_cancelled_schedule(db_session):
    jan = _seed(db_session, effective_date="2024-01-01")
    mar = _seed(db_session, effective_date="2024-03-01")
    PriceScheduleService(db_session, today=date(2024, 4, 1)).cancel(mar.id, "wrong", "x@example.com")
    db_session.commit()

    price = EffectivePriceService(db_session).resolve(1, date(2024, 4, 1))

    assert price.schedule_id == jan.id


def test_fallback_to_item_base_price(db_session):
    db_session.add(
        ItemPrice(item_id=1, base_price=Decimal("5000"), discount1_pct=Decimal("10"), tax_pct=Decimal("11"))
    )
    db_session.commit()

    price = EffectivePriceService(db_session).resolve_with_fallback(1, date(2024, 6, 1))

    assert price.source == "base"
    assert price.schedule_id is None
    assert price.price_after_discount1 == Decimal("4500.00")
    assert price.price_after_discount2 == Decimal("4500.00")


def test_fallback_without_any_price_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        EffectivePriceService(db_session).resolve_with_fallback(1, date(2024, 6, 1))


def test_zero_base_record_is_no_fallback(db_session):
    _seed(db_session, effective_date="2024-01-01")
    db_session.add(ItemPrice(item_id=2, base_price=Decimal("0")))
    db_session.commit()
    service = EffectivePriceService(db_session)

    prices = service.resolve_lines(
        [
            PriceLine(item_id=1, as_of=date(2024, 6, 1)),
            PriceLine(item_id=2, as_of=date(2024, 6, 1)),
        ]
    )

    assert prices[0].base_price == Decimal("12000.00")
    assert prices[1] is None
    with pytest.raises(NotFoundError):
        service.resolve_with_fallback(2, date(2024, 6, 1))
    assert service.explain(2, date(2024, 6, 1))["price"] is None


def test_resolve_lines_reads_each_item_once(db_session):
    _seed(db_session, effective_date="2024-01-01")
    _seed(db_session, item_id=2, effective_date="2024-01-01", base_price="700")
    cache = ScheduleReadCache()
    service = EffectivePriceService(db_session, cache=cache)

    prices = service.resolve_lines(
        [
            PriceLine(item_id=1, as_of=date(2024, 6, 1)),
            PriceLine(item_id=2, as_of=date(2024, 6, 1)),
            PriceLine(item_id=3, as_of=date(2024, 6, 1)),
            PriceLine(item_id=1, as_of=date(2023, 6, 1)),
        ]
    )

    assert [p.base_price if p else None for p in prices] == [
        Decimal("12000.00"),
        Decimal("700.00"),
        None,
        None,
    ]
    assert 1 in cache and 2 in cache and 3 in cache


def test_explain_lists_candidates_with_statuses(db_session):
    jan = _seed(db_session, effective_date="2024-01-01")
    mar = _seed(db_session, effective_date="2024-03-01")

    result = EffectivePriceService(db_session).explain(1, date(2024, 4, 1))

    assert result["price"].schedule_id == mar.id
    assert [(c["schedule_id"], c["status"], c["selected"]) for c in result["candidates"]] == [
        (mar.id, "ACTIVE", True),
        (jan.id, "EXPIRED", False),
    ]
    assert "global schedule" in result["explanation"]
