from __future__ import annotations

from sqlalchemy.orm import Session

from priceport.crud.price_schedule import (
    list_price_schedules_by_item,
    list_price_schedules_by_items,
)
from priceport.models.price_schedule import ItemPriceSchedule


class ScheduleReadCache:
    """
    Per-request memo of item_id -> schedules.

    One instance lives for one request (see `get_schedule_read_cache`) so a
    purchase order with many lines for the same item reads the store once.
    Writers invalidate the items they touch; nothing outlives the request.
    """

    def __init__(self) -> None:
        self._by_item: dict[int, list[ItemPriceSchedule]] = {}

    def schedules_for_item(self, db: Session, item_id: int) -> list[ItemPriceSchedule]:
        rows = self._by_item.get(item_id)
        if rows is None:
            rows = list_price_schedules_by_item(db, item_id)
            self._by_item[item_id] = rows
        return rows

    def prefetch(self, db: Session, item_ids: list[int]) -> None:
        missing = sorted({i for i in item_ids if i not in self._by_item})
        if not missing:
            return
        for item_id in missing:
            self._by_item[item_id] = []
        for row in list_price_schedules_by_items(db, missing):
            self._by_item[row.item_id].append(row)

    def invalidate(self, item_id: int | None = None) -> None:
        if item_id is None:
            self._by_item.clear()
        else:
            self._by_item.pop(item_id, None)

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._by_item


def get_schedule_read_cache() -> ScheduleReadCache:
    return ScheduleReadCache()
