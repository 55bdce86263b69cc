"""
Order models: Order, OrderLine.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .customer import Customer
    from .catalog import MenuItem


class Order(AuditMixin, Base):
    """
    A customer order.

    Money is stored in cents. total_cents = subtotal_cents - discount_cents,
    and the coupon claim that produced the discount is kept alongside.
    cancelled_at is set exactly once, when stock is restored.
    """

    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    # Human sequence number shown on receipts ("007"), assigned after insert
    display_id: Mapped[Optional[str]] = mapped_column(String(16), index=True)
    customer_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("customer.id"), nullable=False, index=True
    )
    # Snapshot at order time
    customer_name: Mapped[Optional[str]] = mapped_column(Text)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))

    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    # Plain column: customer_coupon already references this table
    coupon_claim_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    payment_id: Mapped[Optional[str]] = mapped_column(String(120))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer: Mapped["Customer"] = relationship(back_populates="orders")
    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="order",
        order_by="OrderLine.id",
    )
    reservations: Mapped[list["StockReservation"]] = relationship(
        back_populates="order",
        order_by="StockReservation.stock_item_name",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'preparing', 'ready', 'delivered', 'cancelled')",
            name="chk_order_status_valid",
        ),
        CheckConstraint("subtotal_cents >= 0", name="chk_order_subtotal_non_negative"),
        CheckConstraint("discount_cents >= 0", name="chk_order_discount_non_negative"),
        CheckConstraint("total_cents >= 0", name="chk_order_total_non_negative"),
        # Loyalty balance sums delivered spend per customer
        Index("ix_order_customer_status", "customer_id", "status"),
    )


class OrderLine(AuditMixin, Base):
    """
    One flattened line of an order.

    Add-ons and drinks chosen for a main item become ordinary lines with
    kind set accordingly and parent_line_id pointing at the main line.
    """

    __tablename__ = "order_line"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    menu_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("menu_item.id"), nullable=False, index=True
    )
    parent_line_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("order_line.id"), nullable=True
    )
    kind: Mapped[str] = mapped_column(String(16), default="item", nullable=False)
    # Snapshots at order time
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="lines")
    menu_item: Mapped["MenuItem"] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_line_quantity_positive"),
        CheckConstraint("unit_price_cents >= 0", name="chk_order_line_price_non_negative"),
    )

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


class StockReservation(Base):
    """
    Stock taken from each site for one stock item when an order was placed.

    Placement draws from the active site first and the reserve site for the
    remainder; cancellation gives back exactly these amounts.
    """

    __tablename__ = "stock_reservation"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    stock_item_name: Mapped[str] = mapped_column(String(120), nullable=False)
    required_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    active_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserve_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    restored_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    order: Mapped["Order"] = relationship(back_populates="reservations")

    __table_args__ = (
        UniqueConstraint("order_id", "stock_item_name", name="uq_reservation_order_stock"),
        CheckConstraint("active_taken >= 0 AND reserve_taken >= 0", name="chk_reservation_non_negative"),
    )
