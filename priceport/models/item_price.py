from decimal import Decimal

from sqlalchemy import Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from priceport.db.base import Base
from priceport.models.mixins import AuditMixin


class ItemPrice(AuditMixin, Base):
    """
    Current (non-scheduled) price of an item, maintained by the item master.
    Read-only here: it is the fallback when no schedule applies.
    """

    __tablename__ = "item_price"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)

    base_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    discount1_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    discount2_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    tax_pct: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
