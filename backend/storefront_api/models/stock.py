"""
Stock ledger model.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, BigIntPK


class StockItem(AuditMixin, Base):
    """
    A named physical supply counted at two sites.

    reserve_quantity is the back store, active_quantity is the point of sale.
    Total sellable stock is the sum of both.
    """

    __tablename__ = "stock_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(60), nullable=False, default="General")

    reserve_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Staff who last counted each site
    signed_reserve_by: Mapped[Optional[str]] = mapped_column(Text)
    signed_active_by: Mapped[Optional[str]] = mapped_column(Text)

    supplier: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("reserve_quantity >= 0", name="chk_stock_reserve_non_negative"),
        CheckConstraint("active_quantity >= 0", name="chk_stock_active_non_negative"),
    )

    @property
    def total_quantity(self) -> int:
        return self.reserve_quantity + self.active_quantity
