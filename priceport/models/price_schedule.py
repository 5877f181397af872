from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from priceport.core.pricing.lifecycle import ScheduleStatus
from priceport.db.base import Base
from priceport.models.mixins import AuditMixin

GLOBAL_SCOPE = 0


def customer_scope_key(customer_id: int | None) -> int:
    """NULL never collides in a unique index, so global rows share scope 0."""
    return GLOBAL_SCOPE if customer_id is None else int(customer_id)


class ItemPriceSchedule(AuditMixin, Base):
    """
    A future-dated (or backfilled) price for one item, either global or
    scoped to one customer. Derived prices are written by the cascade
    calculator only.
    """

    __tablename__ = "item_price_schedule"

    __table_args__ = (
        # One live schedule per (item, customer scope, date); cancelled rows free the slot.
        Index(
            "uq_item_price_schedule_scope_date",
            "item_id",
            "customer_scope",
            "effective_date",
            unique=True,
            postgresql_where=text("status <> 'CANCELLED'"),
            sqlite_where=text("status <> 'CANCELLED'"),
        ),
        Index("ix_item_price_schedule_item_date", "item_id", "effective_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    item_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    customer_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    customer_scope: Mapped[int] = mapped_column(
        Integer, nullable=False, default=GLOBAL_SCOPE, server_default=text("0")
    )

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    base_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    discount1_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    price_after_discount1: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    discount2_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    price_after_discount2: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    tax_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    # Persisted lifecycle facts only: PENDING or CANCELLED.
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ScheduleStatus.PENDING.value,
        server_default=text("'PENDING'"),
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def scope_type(self) -> str:
        return "global" if self.customer_id is None else "customer"

    def __repr__(self) -> str:
        return (
            f"<ItemPriceSchedule id={self.id} item_id={self.item_id} "
            f"customer_id={self.customer_id} effective_date={self.effective_date} "
            f"status={self.status}>"
        )
