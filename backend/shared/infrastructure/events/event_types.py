"""
Event Type Constants.

Defines all event types published on Redis pub/sub when a revision
counter is bumped.
"""

# =============================================================================
# Stock and availability
# =============================================================================

STOCK_ADJUSTED = "STOCK_ADJUSTED"
MENU_AVAILABILITY_CHANGED = "MENU_AVAILABILITY_CHANGED"
MENU_ITEM_UPDATED = "MENU_ITEM_UPDATED"  # Admin edited enable bit or requirements

# =============================================================================
# Order lifecycle
# Flow: pending -> preparing -> ready -> delivered, or -> cancelled
# =============================================================================

ORDER_PLACED = "ORDER_PLACED"
ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
ORDER_CANCELLED = "ORDER_CANCELLED"

# =============================================================================
# Loyalty
# =============================================================================

COUPON_CLAIMED = "COUPON_CLAIMED"
COUPON_REDEEMED = "COUPON_REDEEMED"

ALL_EVENT_TYPES = frozenset({
    STOCK_ADJUSTED,
    MENU_AVAILABILITY_CHANGED,
    MENU_ITEM_UPDATED,
    ORDER_PLACED,
    ORDER_STATUS_CHANGED,
    ORDER_CANCELLED,
    COUPON_CLAIMED,
    COUPON_REDEEMED,
})

# Maximum serialized event size in bytes
MAX_EVENT_SIZE = 64 * 1024
