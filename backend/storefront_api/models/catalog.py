"""
Menu catalog models: menu items and their stock requirements.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK


class MenuItem(AuditMixin, Base):
    """
    Something a customer can order.

    is_available is derived from admin_enabled and current stock and is
    written back by the availability resolver so reads never recompute it.
    """

    __tablename__ = "menu_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(60), nullable=False, index=True)
    preparation_time: Mapped[Optional[int]] = mapped_column(Integer)  # minutes

    # Manual switch set by staff; False overrides any stock level
    admin_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Sellable by staff but not listed to customers
    hidden_from_customers: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    requirements: Mapped[list["StockRequirement"]] = relationship(
        back_populates="menu_item",
        cascade="all, delete-orphan",
        order_by="StockRequirement.stock_item_name",
    )

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_menu_item_price_non_negative"),
    )


class StockRequirement(Base):
    """One stock item consumed per unit of a menu item sold."""

    __tablename__ = "stock_requirement"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    menu_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("menu_item.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # By name, not FK: stock items are keyed by name across the back office
    stock_item_name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    quantity_per_unit: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    menu_item: Mapped["MenuItem"] = relationship(back_populates="requirements")

    __table_args__ = (
        UniqueConstraint("menu_item_id", "stock_item_name", name="uq_requirement_item_stock"),
        CheckConstraint("quantity_per_unit > 0", name="chk_requirement_quantity_positive"),
    )
