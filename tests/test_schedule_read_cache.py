from __future__ import annotations

from datetime import date

from priceport.services.price_schedule_service import PriceScheduleService
from priceport.services.schedule_read_cache import ScheduleReadCache


def test_writes_invalidate_the_request_cache(db_session):
    cache = ScheduleReadCache()
    service = PriceScheduleService(db_session, cache=cache, today=date(2024, 6, 1))

    assert cache.schedules_for_item(db_session, 1) == []
    assert 1 in cache

    service.create(
        {"item_id": 1, "effective_date": "2024-01-01", "base_price": "10"}, "a@example.com"
    )

    assert len(cache.schedules_for_item(db_session, 1)) == 1


def test_invalidate_all():
    cache = ScheduleReadCache()
    cache._by_item[1] = []
    cache._by_item[2] = []

    cache.invalidate()

    assert 1 not in cache and 2 not in cache
