from __future__ import annotations

from datetime import date
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from priceport.api.deps.request_identity import get_request_email
from priceport.core.config import settings
from priceport.core.pricing.errors import FieldError, InvalidArgumentError, NotFoundError, PricingFailure
from priceport.core.pricing.lifecycle import ScheduleStatus
from priceport.db.session import get_db
from priceport.schemas.price_schedule import (
    BulkScheduleRequest,
    BulkScheduleResponse,
    EffectivePriceBatchItem,
    EffectivePriceBatchRequest,
    EffectivePriceBatchResponse,
    EffectivePriceExplanation,
    EffectivePriceOut,
    ItemPriceScheduleCancel,
    ItemPriceScheduleCreate,
    ItemPriceScheduleOut,
    ItemPriceSchedulePage,
    ItemPriceScheduleUpdate,
)
from priceport.services.effective_price_service import EffectivePriceService, PriceLine
from priceport.services.price_schedule_bulk_service import (
    XLSX_MEDIA_TYPE,
    build_template,
    bulk_create,
    import_workbook,
)
from priceport.services.price_schedule_service import PriceScheduleService, ScheduleRecord
from priceport.services.price_schedule_validation import parse_as_of
from priceport.services.schedule_read_cache import ScheduleReadCache, get_schedule_read_cache

router = APIRouter(prefix="/item-price-schedules", tags=["item-price-schedules"])


def _raise_failure(db: Session, exc: PricingFailure) -> NoReturn:
    db.rollback()
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _ensure_bulk_enabled() -> None:
    if not settings.PRICE_SCHEDULE_BULK_ENABLED:
        raise HTTPException(status_code=404, detail="Bulk price schedule import is disabled")


def _to_out(record: ScheduleRecord) -> ItemPriceScheduleOut:
    out = ItemPriceScheduleOut.model_validate(record.schedule)
    return out.model_copy(
        update={"status": record.status.value, "stored_status": record.schedule.status}
    )


def _status_filter(raw: Optional[str]) -> Optional[ScheduleStatus]:
    text = (raw or "").strip().upper()
    if not text:
        return None
    try:
        return ScheduleStatus(text)
    except ValueError:
        allowed = ", ".join(s.value for s in ScheduleStatus)
        raise InvalidArgumentError(
            [FieldError("status", "invalid", f"status must be one of {allowed}.")]
        )


# Fixed paths first: /{schedule_id} would otherwise shadow them.


@router.get("/effective-price", response_model=EffectivePriceOut)
def get_effective_price(
    item_id: int = Query(..., ge=1),
    as_of: Optional[str] = Query(None, alias="date"),
    customer_id: Optional[int] = Query(None, ge=1),
    fallback: bool = Query(True),
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    service = EffectivePriceService(db, cache=cache)
    try:
        when = parse_as_of(as_of)
        if fallback:
            price = service.resolve_with_fallback(item_id, when, customer_id)
        else:
            price = service.resolve(item_id, when, customer_id)
            if price is None:
                raise NotFoundError(f"No scheduled price applies to item {item_id}.")
    except PricingFailure as exc:
        _raise_failure(db, exc)
    return EffectivePriceOut.model_validate(price)


@router.post("/effective-price/batch", response_model=EffectivePriceBatchResponse)
def get_effective_prices(
    payload: EffectivePriceBatchRequest,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    service = EffectivePriceService(db, cache=cache)
    lines: list[PriceLine] = []
    errors: list[FieldError] = []
    for idx, line in enumerate(payload.lines):
        try:
            when = parse_as_of(line.as_of)
        except InvalidArgumentError as exc:
            errors += [
                FieldError(f"lines[{idx}].date", err.code, err.message) for err in exc.errors
            ]
            continue
        lines.append(PriceLine(item_id=line.item_id, as_of=when, customer_id=line.customer_id))
    try:
        if errors:
            raise InvalidArgumentError(errors)
        prices = service.resolve_lines(lines, fallback=payload.fallback)
    except PricingFailure as exc:
        _raise_failure(db, exc)
    return EffectivePriceBatchResponse(
        items=[
            EffectivePriceBatchItem(
                line=idx,
                item_id=line.item_id,
                found=price is not None,
                price=EffectivePriceOut.model_validate(price) if price is not None else None,
            )
            for idx, (line, price) in enumerate(zip(lines, prices), start=1)
        ]
    )


@router.get("/effective-price/explain", response_model=EffectivePriceExplanation)
def explain_effective_price(
    item_id: int = Query(..., ge=1),
    as_of: Optional[str] = Query(None, alias="date"),
    customer_id: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    service = EffectivePriceService(db, cache=cache)
    try:
        result = service.explain(item_id, parse_as_of(as_of), customer_id)
    except PricingFailure as exc:
        _raise_failure(db, exc)
    price = result["price"]
    return EffectivePriceExplanation(
        price=EffectivePriceOut.model_validate(price) if price is not None else None,
        candidates=result["candidates"],
        explanation=result["explanation"],
        context=result["context"],
    )


@router.post("/bulk", response_model=BulkScheduleResponse)
def bulk_create_schedules(
    payload: BulkScheduleRequest,
    request: Request,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    _ensure_bulk_enabled()
    try:
        result = bulk_create(db, payload.rows, get_request_email(request), cache=cache)
        db.commit()
    except PricingFailure as exc:
        _raise_failure(db, exc)
    return result


@router.post("/bulk/upload", response_model=BulkScheduleResponse)
def bulk_upload_schedules(
    request: Request,
    payload: bytes = Body(...),
    filename: str = Query("upload.xlsx"),
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    _ensure_bulk_enabled()
    filename = (filename or "").strip()
    if not filename.lower().endswith(".xlsx"):
        raise HTTPException(status_code=400, detail="Only .xlsx files are supported.")
    try:
        result = import_workbook(db, payload, get_request_email(request), cache=cache)
        db.commit()
    except PricingFailure as exc:
        _raise_failure(db, exc)
    return result


@router.get("/bulk/template.xlsx")
def download_bulk_template():
    _ensure_bulk_enabled()
    return Response(
        content=build_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="item_price_schedule_template.xlsx"'},
    )


@router.get("/item/{item_id}", response_model=list[ItemPriceScheduleOut])
def list_schedules_for_item(
    item_id: int,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    records = PriceScheduleService(db, cache=cache).list_by_item(item_id)
    records.sort(key=lambda r: (r.schedule.effective_date, r.schedule.id), reverse=True)
    return [_to_out(r) for r in records]


@router.post("", response_model=ItemPriceScheduleOut, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: ItemPriceScheduleCreate,
    request: Request,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    service = PriceScheduleService(db, cache=cache)
    try:
        record = service.create(payload.model_dump(exclude_unset=True), get_request_email(request))
        db.commit()
    except PricingFailure as exc:
        _raise_failure(db, exc)
    db.refresh(record.schedule)
    return _to_out(record)


@router.get("", response_model=ItemPriceSchedulePage)
def list_schedules(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1),
    item_id: Optional[int] = Query(None, ge=1),
    customer_id: Optional[int] = Query(None, ge=1),
    global_only: bool = Query(False),
    status_filter: Optional[str] = Query(None, alias="status"),
    effective_date_from: Optional[date] = Query(None),
    effective_date_to: Optional[date] = Query(None),
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    service = PriceScheduleService(db, cache=cache)
    try:
        page = service.list(
            skip=skip,
            limit=min(limit, settings.PRICE_SCHEDULE_MAX_PAGE_SIZE),
            item_id=item_id,
            customer_id=customer_id,
            global_only=global_only,
            status=_status_filter(status_filter),
            effective_date_from=effective_date_from,
            effective_date_to=effective_date_to,
            q=q,
        )
    except PricingFailure as exc:
        _raise_failure(db, exc)
    return {
        "total": page.total,
        "skip": page.skip,
        "limit": page.limit,
        "items": [_to_out(r) for r in page.items],
    }


@router.get("/{schedule_id}", response_model=ItemPriceScheduleOut)
def get_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    try:
        record = PriceScheduleService(db, cache=cache).get(schedule_id)
    except PricingFailure as exc:
        _raise_failure(db, exc)
    return _to_out(record)


@router.patch("/{schedule_id}", response_model=ItemPriceScheduleOut)
def update_schedule(
    schedule_id: int,
    payload: ItemPriceScheduleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    service = PriceScheduleService(db, cache=cache)
    try:
        record = service.update(
            schedule_id, payload.model_dump(exclude_unset=True), get_request_email(request)
        )
        db.commit()
    except PricingFailure as exc:
        _raise_failure(db, exc)
    db.refresh(record.schedule)
    return _to_out(record)


@router.patch("/{schedule_id}/cancel", response_model=ItemPriceScheduleOut)
def cancel_schedule(
    schedule_id: int,
    request: Request,
    payload: Optional[ItemPriceScheduleCancel] = None,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    service = PriceScheduleService(db, cache=cache)
    try:
        reason = payload.reason if payload is not None else None
        record = service.cancel(schedule_id, reason, get_request_email(request))
        db.commit()
    except PricingFailure as exc:
        _raise_failure(db, exc)
    db.refresh(record.schedule)
    return _to_out(record)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    cache: ScheduleReadCache = Depends(get_schedule_read_cache),
):
    try:
        PriceScheduleService(db, cache=cache).delete(schedule_id)
        db.commit()
    except PricingFailure as exc:
        _raise_failure(db, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
