from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import BaseSchema

# Write bodies are deliberately loose: values are coerced and checked by
# price_schedule_validation so every field problem is reported together.
_Number = Optional[Decimal | float | int | str]


class ItemPriceScheduleCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    item_id: Optional[int | str] = None
    customer_id: Optional[int | str] = None
    effective_date: Optional[date | str] = None
    base_price: _Number = None
    discount1_pct: _Number = None
    discount2_pct: _Number = None
    tax_pct: _Number = None
    notes: Optional[str] = None
    status: Optional[str] = None


class ItemPriceScheduleUpdate(ItemPriceScheduleCreate):
    cancel_reason: Optional[str] = Field(default=None, max_length=500)


class ItemPriceScheduleCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class ItemPriceScheduleOut(BaseSchema):
    id: int
    item_id: int
    customer_id: Optional[int] = None
    scope_type: str
    effective_date: date
    base_price: Decimal
    discount1_pct: Optional[Decimal] = None
    price_after_discount1: Decimal
    discount2_pct: Optional[Decimal] = None
    price_after_discount2: Decimal
    tax_pct: Optional[Decimal] = None
    status: str
    stored_status: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str] = None
    updated_by: Optional[str] = None


class ItemPriceSchedulePage(BaseModel):
    total: int
    skip: int
    limit: int
    items: list[ItemPriceScheduleOut]


class EffectivePriceOut(BaseSchema):
    item_id: int
    customer_id: Optional[int] = None
    as_of: date
    base_price: Decimal
    discount1_pct: Optional[Decimal] = None
    discount2_pct: Optional[Decimal] = None
    price_after_discount1: Decimal
    price_after_discount2: Decimal
    tax_pct: Optional[Decimal] = None
    source: str
    scope: str
    schedule_id: Optional[int] = None
    effective_date: Optional[date] = None


class EffectivePriceLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: int = Field(ge=1)
    # Raw like the ?date= query value; parsed on the pricing business day.
    as_of: Optional[str] = Field(default=None, alias="date")
    customer_id: Optional[int] = Field(default=None, ge=1)


class EffectivePriceBatchRequest(BaseModel):
    lines: list[EffectivePriceLine] = Field(min_length=1, max_length=1000)
    fallback: bool = True


class EffectivePriceBatchItem(BaseModel):
    line: int
    item_id: int
    found: bool
    price: Optional[EffectivePriceOut] = None


class EffectivePriceBatchResponse(BaseModel):
    items: list[EffectivePriceBatchItem]


class ResolutionCandidate(BaseModel):
    schedule_id: int
    scope: str
    customer_id: Optional[int] = None
    effective_date: date
    price_after_discount2: Decimal
    status: str
    selected: bool


class EffectivePriceExplanation(BaseModel):
    price: Optional[EffectivePriceOut] = None
    candidates: list[ResolutionCandidate]
    explanation: str
    context: dict[str, Any]


class BulkScheduleRequest(BaseModel):
    rows: list[dict[str, Any]]


class BulkRowError(BaseModel):
    field: Optional[str] = None
    code: str
    message: str


class BulkRowResult(BaseModel):
    row_number: int
    status: str
    schedule_id: Optional[int] = None
    errors: list[BulkRowError] = Field(default_factory=list)


class BulkSummary(BaseModel):
    processed: int
    created: int
    failed: int


class BulkScheduleResponse(BaseModel):
    summary: BulkSummary
    results: list[BulkRowResult]
