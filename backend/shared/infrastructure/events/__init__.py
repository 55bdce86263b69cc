"""
Revision events over Redis pub/sub.

This package provides:
- event_types.py: Event type constants
- event_schema.py: Event dataclass with validation
- channels.py: Channel naming functions
- redis_pool.py: Connection pool management and health check
- publisher.py: publish_event with retry
"""

from .event_types import (
    STOCK_ADJUSTED,
    MENU_AVAILABILITY_CHANGED,
    MENU_ITEM_UPDATED,
    ORDER_PLACED,
    ORDER_STATUS_CHANGED,
    ORDER_CANCELLED,
    COUPON_CLAIMED,
    COUPON_REDEEMED,
    ALL_EVENT_TYPES,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .channels import (
    channel_stock,
    channel_menu,
    channel_orders,
    channel_customer,
    channel_loyalty,
    channel_for_entity,
)
from .redis_pool import get_redis_pool, check_redis_health, close_redis_pool
from .publisher import publish_event, calculate_retry_delay_with_jitter

__all__ = [
    # Event Types
    "STOCK_ADJUSTED",
    "MENU_AVAILABILITY_CHANGED",
    "MENU_ITEM_UPDATED",
    "ORDER_PLACED",
    "ORDER_STATUS_CHANGED",
    "ORDER_CANCELLED",
    "COUPON_CLAIMED",
    "COUPON_REDEEMED",
    "ALL_EVENT_TYPES",
    "MAX_EVENT_SIZE",
    # Event Schema
    "Event",
    # Channels
    "channel_stock",
    "channel_menu",
    "channel_orders",
    "channel_customer",
    "channel_loyalty",
    "channel_for_entity",
    # Redis Pool
    "get_redis_pool",
    "check_redis_health",
    "close_redis_pool",
    # Publishing
    "publish_event",
    "calculate_retry_delay_with_jitter",
]
