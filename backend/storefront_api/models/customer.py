"""
Customer model.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base

if TYPE_CHECKING:
    from .order import Order
    from .loyalty import CustomerCoupon


class Customer(AuditMixin, Base):
    """
    A person who orders from the storefront.

    The primary key is the user ID issued by the external auth layer, so a
    customer row can be created lazily on first checkout.
    """

    __tablename__ = "customer"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    phone: Mapped[Optional[str]] = mapped_column(Text)

    orders: Mapped[list["Order"]] = relationship(back_populates="customer")
    claims: Mapped[list["CustomerCoupon"]] = relationship(back_populates="customer")
