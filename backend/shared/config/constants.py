"""
Centralized constants for the backend application.
Avoids magic strings for statuses, coupon types and entity keys.

Usage:
    from shared.config.constants import OrderStatus, CouponType

    if status == OrderStatus.PENDING:
        ...
"""

from typing import Final


# =============================================================================
# Order lifecycle
# =============================================================================


class OrderStatus:
    """Order status constants."""

    PENDING: Final[str] = "pending"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    DELIVERED: Final[str] = "delivered"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [PENDING, PREPARING, READY, DELIVERED, CANCELLED]
    ACTIVE: Final[list[str]] = [PENDING, PREPARING, READY]
    TERMINAL: Final[list[str]] = [DELIVERED, CANCELLED]


# Allowed status transitions. Terminal states have no outgoing edges.
ORDER_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class OrderLineKind:
    """How a flattened order line entered the cart."""

    ITEM: Final[str] = "item"
    ADD_ON: Final[str] = "add_on"
    DRINK: Final[str] = "drink"


# =============================================================================
# Loyalty
# =============================================================================


class CouponType:
    """Coupon type constants. The type selects how `value` is decoded."""

    FREE_ITEM: Final[str] = "free_item"
    PERCENT_OFF: Final[str] = "percent_off"
    BOGO: Final[str] = "bogo"
    MIN_ORDER_DISCOUNT: Final[str] = "min_order_discount"

    ALL: Final[list[str]] = [FREE_ITEM, PERCENT_OFF, BOGO, MIN_ORDER_DISCOUNT]
    ITEM_BASED: Final[list[str]] = [FREE_ITEM, BOGO]


class DiscountType:
    """Discount flavour inside a min_order_discount payload."""

    FIXED: Final[str] = "fixed"
    PERCENT: Final[str] = "percent"


# =============================================================================
# Stock
# =============================================================================


class StockCategory:
    """Stock item categories used by the back-office screens."""

    MEAT: Final[str] = "Meat"
    SIDES: Final[str] = "Sides"
    SAUCES: Final[str] = "Sauces"
    DRINKS: Final[str] = "Drinks"
    PACKAGING: Final[str] = "Packaging"


# =============================================================================
# Revisions
# =============================================================================


class RevisionEntity:
    """Entity type prefixes for revision counters."""

    STOCK_ITEM: Final[str] = "stock_item"
    MENU_ITEM: Final[str] = "menu_item"
    ORDER: Final[str] = "order"
    CUSTOMER_CLAIMS: Final[str] = "customer_claims"
    MENU: Final[str] = "menu"


# Catalog-wide key bumped whenever any menu item's availability flips
MENU_AVAILABILITY_KEY: Final[str] = "availability"


# =============================================================================
# Limits
# =============================================================================


class Limits:
    """Input bounds for cart and catalog payloads."""

    MAX_CART_LINES: Final[int] = 50
    MAX_LINE_QUANTITY: Final[int] = 99
    MAX_SUB_LINES: Final[int] = 20
    MAX_NOTES_LENGTH: Final[int] = 500
    MAX_NAME_LENGTH: Final[int] = 120
    MAX_STOCK_DELTA: Final[int] = 100_000
