"""
Seed data for development and testing.
Creates the stock items and menu from the built-in catalog table.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront_api.models import MenuItem, StockItem, StockRequirement
from storefront_api.services.catalog import DEFAULT_MENU, DEFAULT_STOCK_ITEMS
from storefront_api.services.domain import AvailabilityService
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit

logger = get_logger(__name__)

SEED_ACTOR = "seed"


def seed_stock(db: Session) -> int:
    """
    Insert missing stock items with zero counts.
    Idempotent: existing items are left alone.
    """
    existing = set(db.execute(select(StockItem.name)).scalars().all())
    created = 0
    for name, category in DEFAULT_STOCK_ITEMS.items():
        if name in existing:
            continue
        db.add(StockItem(name=name, category=category, created_by=SEED_ACTOR))
        created += 1
    return created


def seed_menu(db: Session) -> int:
    """
    Insert the default menu with explicit requirement rows.
    Skipped entirely once any menu item exists.
    """
    if db.scalar(select(MenuItem.id).limit(1)):
        logger.info("Menu already seeded, skipping")
        return 0

    for entry in DEFAULT_MENU:
        item = MenuItem(
            name=entry.name,
            description=entry.description,
            price_cents=entry.price_cents,
            category=entry.category,
            preparation_time=entry.preparation_time,
            hidden_from_customers=entry.hidden_from_customers,
            # Nothing is stocked yet; recompute flips these
            is_available=False,
            created_by=SEED_ACTOR,
        )
        item.requirements = [
            StockRequirement(stock_item_name=r.stock_item_name, quantity_per_unit=r.quantity_per_unit)
            for r in entry.requirements
        ]
        db.add(item)
    return len(DEFAULT_MENU)


def seed(db: Session) -> None:
    """Seed stock and menu, then derive availability."""
    stock_created = seed_stock(db)
    menu_created = seed_menu(db)
    if not stock_created and not menu_created:
        return

    db.flush()
    AvailabilityService(db).recompute_all()
    safe_commit(db)
    logger.info("Seed complete", stock_items=stock_created, menu_items=menu_created)
