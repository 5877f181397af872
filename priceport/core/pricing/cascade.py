"""
Two-stage cascading discount.

    price_after_discount1 = base_price x (1 - discount1_pct / 100)
    price_after_discount2 = price_after_discount1 x (1 - discount2_pct / 100)

Each stage is rounded to the currency minor unit (2 places, half-up) before
it feeds the next one, so stage 2 always works on the figure a user sees for
stage 1. Tax is deliberately not part of the cascade; it is carried as a
separate percentage and applied by whoever consumes the final price.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from priceport.core.pricing.errors import FieldError, InvalidArgumentError

MINOR_UNIT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CascadeResult:
    price_after_discount1: Decimal
    price_after_discount2: Decimal


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def _apply_discount(amount: Decimal, pct: Decimal) -> Decimal:
    return round_money(amount * (HUNDRED - pct) / HUNDRED)


def _checked_pct(name: str, value, errors: list[FieldError]) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        pct = to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        errors.append(FieldError(name, "invalid", f"{name} must be a number."))
        return Decimal("0")
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        errors.append(FieldError(name, "out_of_range", f"{name} must be between 0 and 100."))
    return pct


def compute_cascade(base_price, discount1_pct=None, discount2_pct=None) -> CascadeResult:
    errors: list[FieldError] = []
    try:
        base = to_decimal(base_price) if base_price is not None else None
    except (InvalidOperation, ValueError, TypeError):
        base = None
    if base is None or not base.is_finite() or base <= 0:
        errors.append(FieldError("base_price", "must_be_positive", "base_price must be greater than 0."))

    pct1 = _checked_pct("discount1_pct", discount1_pct, errors)
    pct2 = _checked_pct("discount2_pct", discount2_pct, errors)
    if errors:
        raise InvalidArgumentError(errors)

    after1 = _apply_discount(base, pct1)
    after2 = _apply_discount(after1, pct2)
    return CascadeResult(price_after_discount1=after1, price_after_discount2=after2)
