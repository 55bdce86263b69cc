"""
Domain Services.

Services hold the business rules and own their transactions. Routers stay
thin: parse, call one service method, shape the response.

    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from storefront_api.services.domain import OrderService

    order = OrderService(db).place_order(user.id, body.lines, payment=body.payment)
"""

from .revision_service import RevisionService
from .stock_ledger import StockLedger, Deduction
from .availability_service import AvailabilityService, is_sellable
from .loyalty_service import LoyaltyService, claim_state, decode_coupon_value
from .order_service import OrderService

__all__ = [
    "RevisionService",
    "StockLedger",
    "Deduction",
    "AvailabilityService",
    "is_sellable",
    "LoyaltyService",
    "claim_state",
    "decode_coupon_value",
    "OrderService",
]
