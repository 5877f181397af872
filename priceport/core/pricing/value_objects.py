from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

SOURCE_SCHEDULED = "scheduled"
SOURCE_BASE = "base"


@dataclass(frozen=True)
class EffectivePrice:
    """Immutable result of price resolution.

    Carries the cascade figures of the winning record and where they came
    from. `tax_pct` is exposed as-is; it is not folded into
    `price_after_discount2`.
    """

    item_id: int
    customer_id: int | None
    as_of: date
    base_price: Decimal
    discount1_pct: Decimal | None
    discount2_pct: Decimal | None
    price_after_discount1: Decimal
    price_after_discount2: Decimal
    tax_pct: Decimal | None
    source: str  # 'scheduled' | 'base'
    scope: str  # 'customer' | 'global' | 'base'
    schedule_id: int | None = None
    effective_date: date | None = None

    def explain(self) -> str:
        """Human-readable explanation of why this price was selected."""
        scope_desc = {
            "customer": "customer-specific schedule",
            "global": "global schedule",
            "base": "item base price, no schedule applies",
        }
        desc = scope_desc.get(self.scope, self.scope)
        if self.effective_date is not None:
            desc += f" effective {self.effective_date.isoformat()}"
        return f"{self.price_after_discount2} ({desc}, as of {self.as_of.isoformat()})"
