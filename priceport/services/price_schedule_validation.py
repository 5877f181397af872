"""
Schema and business-rule validation for schedule writes.

Works on raw mappings (JSON bodies, spreadsheet rows) and reports every
problem it finds as a FieldError instead of stopping at the first one, so a
form or an upload report can show all of them at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from priceport.core.clock import pricing_zone
from priceport.core.pricing.cascade import HUNDRED, round_money
from priceport.core.pricing.errors import FieldError, InvalidArgumentError
from priceport.core.pricing.lifecycle import ScheduleStatus

MAX_PRICE = Decimal("10000000000000000")  # NUMERIC(18, 2)
MAX_NOTES_LENGTH = 1000

PERCENT_FIELDS = ("discount1_pct", "discount2_pct", "tax_pct")
PRICING_FIELDS = ("base_price", "discount1_pct", "discount2_pct", "tax_pct")


@dataclass
class ValidationOutcome:
    cleaned: dict[str, Any] = field(default_factory=dict)
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _coerce_int(raw: Any) -> int | None:
    if _is_blank(raw):
        return None
    if isinstance(raw, bool):
        raise ValueError(f"invalid integer value '{raw}'")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"invalid integer value '{raw}'")
        return int(raw)
    text = str(raw).strip()
    if re.fullmatch(r"-?\d+(\.0+)?", text):
        return int(float(text))
    raise ValueError(f"invalid integer value '{raw}'")


def _coerce_decimal(raw: Any) -> Decimal | None:
    if _is_blank(raw):
        return None
    if isinstance(raw, bool):
        raise ValueError(f"invalid number '{raw}'")
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, float):
        value = Decimal(str(raw))
    else:
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation as exc:
            raise ValueError(f"invalid number '{raw}'") from exc
    if not value.is_finite():
        raise ValueError(f"invalid number '{raw}'")
    return value


def _coerce_date(raw: Any) -> date | None:
    if _is_blank(raw):
        return None
    if isinstance(raw, datetime):
        return _business_date(raw)
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        # Full ISO timestamps from the UI, e.g. toISOString() output.
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        return _business_date(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValueError(f"invalid date '{raw}'") from exc


def _business_date(value: datetime) -> date:
    """Calendar day of an instant in the pricing timezone; naive values are taken as local."""
    if value.tzinfo is not None:
        value = value.astimezone(pricing_zone())
    return value.date()


def parse_as_of(raw: Any) -> date | None:
    """Query-string date; timestamps count on their business day in the pricing timezone."""
    try:
        return _coerce_date(raw)
    except ValueError as exc:
        raise InvalidArgumentError([FieldError("date", "invalid", f"date: {exc}")]) from exc


def _check_id(name: str, raw: Any, *, required: bool, out: ValidationOutcome) -> None:
    try:
        value = _coerce_int(raw)
    except ValueError as exc:
        out.errors.append(FieldError(name, "invalid", f"{name}: {exc}"))
        return
    if value is None:
        if required:
            out.errors.append(FieldError(name, "required", f"{name} is required."))
        else:
            out.cleaned[name] = None
        return
    if value < 1:
        out.errors.append(FieldError(name, "invalid", f"{name} must be a positive integer."))
        return
    out.cleaned[name] = value


def _check_effective_date(raw: Any, out: ValidationOutcome) -> None:
    try:
        value = _coerce_date(raw)
    except ValueError as exc:
        out.errors.append(FieldError("effective_date", "invalid", f"effective_date: {exc}"))
        return
    if value is None:
        out.errors.append(FieldError("effective_date", "required", "effective_date is required."))
        return
    # Past dates are accepted: historical backfill is legal.
    out.cleaned["effective_date"] = value


def _check_base_price(raw: Any, out: ValidationOutcome) -> None:
    try:
        value = _coerce_decimal(raw)
    except ValueError as exc:
        out.errors.append(FieldError("base_price", "invalid", f"base_price: {exc}"))
        return
    if value is None:
        out.errors.append(FieldError("base_price", "required", "base_price is required."))
        return
    if value <= 0:
        out.errors.append(
            FieldError("base_price", "must_be_positive", "base_price must be greater than 0.")
        )
        return
    if value >= MAX_PRICE:
        out.errors.append(FieldError("base_price", "too_large", "base_price is too large."))
        return
    out.cleaned["base_price"] = round_money(value)


def _check_percent(name: str, raw: Any, out: ValidationOutcome) -> None:
    try:
        value = _coerce_decimal(raw)
    except ValueError as exc:
        out.errors.append(FieldError(name, "invalid", f"{name}: {exc}"))
        return
    if value is None:
        out.cleaned[name] = None
        return
    if value < 0 or value > HUNDRED:
        out.errors.append(FieldError(name, "out_of_range", f"{name} must be between 0 and 100."))
        return
    out.cleaned[name] = round_money(value)


def _check_notes(raw: Any, out: ValidationOutcome) -> None:
    if _is_blank(raw):
        out.cleaned["notes"] = None
        return
    text = str(raw).strip()
    if len(text) > MAX_NOTES_LENGTH:
        out.errors.append(
            FieldError("notes", "too_long", f"notes must be at most {MAX_NOTES_LENGTH} characters.")
        )
        return
    out.cleaned["notes"] = text


def _check_status(raw: Any, out: ValidationOutcome) -> ScheduleStatus | None:
    if _is_blank(raw):
        return None
    try:
        return ScheduleStatus(str(raw).strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in ScheduleStatus)
        out.errors.append(FieldError("status", "invalid", f"status must be one of {allowed}."))
        return None


def validate_schedule_create(values: Mapping[str, Any]) -> ValidationOutcome:
    out = ValidationOutcome()
    _check_id("item_id", values.get("item_id"), required=True, out=out)
    _check_id("customer_id", values.get("customer_id"), required=False, out=out)
    _check_effective_date(values.get("effective_date"), out)
    _check_base_price(values.get("base_price"), out)
    for name in PERCENT_FIELDS:
        _check_percent(name, values.get(name), out)
    _check_notes(values.get("notes"), out)

    status = _check_status(values.get("status"), out)
    if status is not None and status != ScheduleStatus.PENDING:
        out.errors.append(
            FieldError("status", "read_only", "New schedules always start as PENDING.")
        )
    # price_after_discount1/2 are recomputed, never taken from input.
    return out


def validate_schedule_patch(values: Mapping[str, Any]) -> ValidationOutcome:
    """Only keys present in `values` are validated and returned."""
    out = ValidationOutcome()
    if "item_id" in values:
        _check_id("item_id", values["item_id"], required=True, out=out)
    if "customer_id" in values:
        _check_id("customer_id", values["customer_id"], required=False, out=out)
    if "effective_date" in values:
        _check_effective_date(values["effective_date"], out)
    if "base_price" in values:
        _check_base_price(values["base_price"], out)
    for name in PERCENT_FIELDS:
        if name in values:
            _check_percent(name, values[name], out)
    if "notes" in values:
        _check_notes(values["notes"], out)
    if "status" in values:
        status = _check_status(values["status"], out)
        if status is not None:
            out.cleaned["status"] = status
    return out
