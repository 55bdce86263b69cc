"""
SQLAlchemy models for the storefront fulfillment engine.

Import models from here:
    from storefront_api.models import Order, StockItem, MenuItem
"""

from .base import AuditMixin, Base, BigIntPK, as_utc, utcnow
from .customer import Customer
from .stock import StockItem
from .catalog import MenuItem, StockRequirement
from .order import Order, OrderLine, StockReservation
from .loyalty import Coupon, CustomerCoupon
from .revision import EntityRevision
from .outbox import OutboxEvent, OutboxStatus

__all__ = [
    # Base
    "Base",
    "AuditMixin",
    "BigIntPK",
    "as_utc",
    "utcnow",
    # Customers
    "Customer",
    # Stock
    "StockItem",
    # Catalog
    "MenuItem",
    "StockRequirement",
    # Orders
    "Order",
    "OrderLine",
    "StockReservation",
    # Loyalty
    "Coupon",
    "CustomerCoupon",
    # Change notification
    "EntityRevision",
    "OutboxEvent",
    "OutboxStatus",
]
