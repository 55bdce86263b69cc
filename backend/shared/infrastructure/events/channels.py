"""
Redis Channel Naming.
"""

from __future__ import annotations

from shared.config.constants import RevisionEntity

CHANNEL_PREFIX = "storefront"


def channel_stock() -> str:
    """Stock ledger changes (back-office screens)."""
    return f"{CHANNEL_PREFIX}:stock"


def channel_menu() -> str:
    """Menu availability changes (storefront menu page)."""
    return f"{CHANNEL_PREFIX}:menu"


def channel_orders() -> str:
    """Order lifecycle changes (kitchen and admin dashboards)."""
    return f"{CHANNEL_PREFIX}:orders"


def channel_customer(customer_id: str) -> str:
    """Direct notifications for one customer (their orders and claims)."""
    if not isinstance(customer_id, str) or not customer_id:
        raise ValueError(f"customer_id must be a non-empty string, got {customer_id!r}")
    return f"{CHANNEL_PREFIX}:customer:{customer_id}"


def channel_loyalty() -> str:
    """Loyalty claim activity."""
    return f"{CHANNEL_PREFIX}:loyalty"


_CHANNEL_BY_ENTITY = {
    RevisionEntity.STOCK_ITEM: channel_stock,
    RevisionEntity.MENU_ITEM: channel_menu,
    RevisionEntity.MENU: channel_menu,
    RevisionEntity.ORDER: channel_orders,
    RevisionEntity.CUSTOMER_CLAIMS: channel_loyalty,
}


def channel_for_entity(entity_type: str) -> str:
    """Route a revision event to its broadcast channel."""
    factory = _CHANNEL_BY_ENTITY.get(entity_type)
    if factory is None:
        raise ValueError(f"No channel for entity type '{entity_type}'")
    return factory()
