"""
Loyalty models: Coupon catalog and customer claims.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK

if TYPE_CHECKING:
    from .customer import Customer


class Coupon(Base):
    """
    A reward customers can buy with loyalty points.

    value is a type-dependent text payload:
    - percent_off: "15"
    - min_order_discount: {"minOrder": 20, "discount": 5, "discountType": "fixed"}
    - free_item / bogo: [3, 7] (qualifying menu item IDs)
    """

    __tablename__ = "coupon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    max_per_account_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Only active coupons are offered and claimable
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('free_item', 'percent_off', 'bogo', 'min_order_discount')",
            name="chk_coupon_type_valid",
        ),
        CheckConstraint("points_cost > 0", name="chk_coupon_points_cost_positive"),
        CheckConstraint("duration_hours > 0", name="chk_coupon_duration_positive"),
        CheckConstraint("max_per_account_per_day > 0", name="chk_coupon_daily_cap_positive"),
    )


class CustomerCoupon(Base):
    """
    A customer's claim on a coupon.

    Live while not used and not expired. Once used it stays used, even if
    the order it was applied to is later cancelled.

    claim_day is the business-local calendar day of claimed_at and
    claim_slot numbers the claims of one coupon on that day from 0, so the
    unique constraint caps claims per day at the database level.
    """

    __tablename__ = "customer_coupon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    customer_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("customer.id"), nullable=False, index=True
    )
    coupon_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("coupon.id"), nullable=False, index=True
    )
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    claim_day: Mapped[date] = mapped_column(Date, nullable=False)
    claim_slot: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    # Snapshot of coupon.points_cost at claim time
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)

    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    order_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=True
    )

    customer: Mapped["Customer"] = relationship(back_populates="claims")
    coupon: Mapped["Coupon"] = relationship()

    __table_args__ = (
        UniqueConstraint(
            "customer_id", "coupon_id", "claim_day", "claim_slot",
            name="uq_customer_coupon_daily_slot",
        ),
        Index("ix_customer_coupon_customer_day", "customer_id", "coupon_id", "claim_day"),
    )
