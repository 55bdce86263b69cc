"""
Availability Domain Service.

Derives each menu item's sellable flag from its stock requirements and the
ledger's total stock (reserve + active), and persists the flag so reads
don't recompute it.

is_available == admin_enabled AND every requirement's stock total >= quantity

Recomputation is whole-catalog, O(items x requirements). Fine for a menu of
tens of items; a large catalog would want a stock item -> dependent menu
items index instead.
"""

from collections.abc import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront_api.models import MenuItem, StockItem, StockRequirement
from storefront_api.services.catalog import Requirement, default_requirements_for
from storefront_api.services.domain.revision_service import RevisionService
from shared.config.constants import MENU_AVAILABILITY_KEY, RevisionEntity
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import MENU_AVAILABILITY_CHANGED, MENU_ITEM_UPDATED
from shared.infrastructure.locks import catalog_lock_key, get_lock_registry
from shared.utils.exceptions import MenuItemNotFoundError, ValidationError

logger = get_logger(__name__)


def is_sellable(
    admin_enabled: bool,
    requirements: Iterable[Requirement],
    stock_totals: Mapping[str, int],
) -> bool:
    """Unknown stock items count as zero stock."""
    if not admin_enabled:
        return False
    return all(
        stock_totals.get(req.stock_item_name, 0) >= req.quantity_per_unit
        for req in requirements
    )


class AvailabilityService:
    """Domain service for menu availability."""

    def __init__(self, db: Session):
        self._db = db
        self._locks = get_lock_registry()

    # =========================================================================
    # Requirements
    # =========================================================================

    def _requirements_of(self, item: MenuItem) -> list[Requirement]:
        if item.requirements:
            return [
                Requirement(r.stock_item_name, r.quantity_per_unit)
                for r in item.requirements
            ]
        return default_requirements_for(item.name)

    def requirements_for(self, menu_item_id: int) -> list[Requirement]:
        """
        Declared requirements of a menu item, falling back to the built-in
        table when none are recorded.
        """
        return self._requirements_of(self._get_menu_item(menu_item_id))

    def requirements_map(self, menu_item_ids: Iterable[int]) -> dict[int, list[Requirement]]:
        """Requirements for several menu items in one query."""
        ids = set(menu_item_ids)
        if not ids:
            return {}
        items = self._db.execute(
            select(MenuItem)
            .options(selectinload(MenuItem.requirements))
            .where(MenuItem.id.in_(ids))
        ).scalars().all()
        return {item.id: self._requirements_of(item) for item in items}

    def set_requirements(
        self,
        menu_item_id: int,
        requirements: list[Requirement],
        actor_id: str | None = None,
    ) -> MenuItem:
        """Replace a menu item's requirements and recompute availability."""
        seen: set[str] = set()
        for req in requirements:
            if req.quantity_per_unit <= 0:
                raise ValidationError(
                    "Requirement quantity must be positive",
                    stock_item=req.stock_item_name,
                )
            if req.stock_item_name in seen:
                raise ValidationError(
                    f"Duplicate requirement for '{req.stock_item_name}'",
                    menu_item_id=menu_item_id,
                )
            seen.add(req.stock_item_name)

        with self._locks.acquire(catalog_lock_key()):
            item = self._get_menu_item(menu_item_id)
            item.requirements.clear()
            self._db.flush()
            for req in requirements:
                item.requirements.append(
                    StockRequirement(
                        stock_item_name=req.stock_item_name,
                        quantity_per_unit=req.quantity_per_unit,
                    )
                )
            item.set_updated_by(actor_id)
            self._bump_menu_item(item, MENU_ITEM_UPDATED, actor_id)
            self.recompute_all()
            safe_commit(self._db)

        logger.info(
            "Menu item requirements replaced",
            menu_item_id=menu_item_id,
            requirements=[(r.stock_item_name, r.quantity_per_unit) for r in requirements],
        )
        return item

    def set_admin_enabled(
        self,
        menu_item_id: int,
        enabled: bool,
        actor_id: str | None = None,
    ) -> MenuItem:
        """Flip the manual enable bit and recompute availability."""
        with self._locks.acquire(catalog_lock_key()):
            item = self._get_menu_item(menu_item_id)
            item.admin_enabled = enabled
            item.set_updated_by(actor_id)
            self._bump_menu_item(item, MENU_ITEM_UPDATED, actor_id)
            self.recompute_all()
            safe_commit(self._db)

        logger.info("Menu item enable bit set", menu_item_id=menu_item_id, enabled=enabled)
        return item

    # =========================================================================
    # Recomputation
    # =========================================================================

    def stock_totals(self) -> dict[str, int]:
        rows = self._db.execute(
            select(StockItem.name, StockItem.reserve_quantity, StockItem.active_quantity)
            .where(StockItem.is_active.is_(True))
        ).all()
        return {name: reserve + active for name, reserve, active in rows}

    def recompute_all(self) -> list[int]:
        """
        Re-evaluate every menu item and persist flags that changed.

        Joins the caller's transaction (flushes, does not commit). Returns
        the IDs of items whose flag flipped.
        """
        with self._locks.acquire(catalog_lock_key()):
            self._db.flush()
            totals = self.stock_totals()
            items = self._db.execute(
                select(MenuItem)
                .options(selectinload(MenuItem.requirements))
                .where(MenuItem.is_active.is_(True))
                .order_by(MenuItem.id)
            ).scalars().all()

            changed: list[MenuItem] = []
            for item in items:
                verdict = is_sellable(item.admin_enabled, self._requirements_of(item), totals)
                if item.is_available != verdict:
                    item.is_available = verdict
                    changed.append(item)

            if not changed:
                return []

            self._db.flush()
            for item in changed:
                self._bump_menu_item(item, MENU_AVAILABILITY_CHANGED, None)
            RevisionService(self._db).bump(
                RevisionEntity.MENU,
                MENU_AVAILABILITY_KEY,
                MENU_AVAILABILITY_CHANGED,
                {"changed": {item.id: item.is_available for item in changed}},
            )

        logger.info(
            "Menu availability changed",
            changed={item.name: item.is_available for item in changed},
        )
        return [item.id for item in changed]

    # =========================================================================
    # Snapshot
    # =========================================================================

    def menu_availability(self, include_hidden: bool = False) -> list[MenuItem]:
        """Menu items with their stored flags. Hidden items only for staff."""
        query = (
            select(MenuItem)
            .where(MenuItem.is_active.is_(True))
            .order_by(MenuItem.category, MenuItem.id)
        )
        if not include_hidden:
            query = query.where(MenuItem.hidden_from_customers.is_(False))
        return list(self._db.execute(query).scalars().all())

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_menu_item(self, menu_item_id: int) -> MenuItem:
        item = self._db.scalar(
            select(MenuItem)
            .options(selectinload(MenuItem.requirements))
            .where(MenuItem.id == menu_item_id, MenuItem.is_active.is_(True))
        )
        if not item:
            raise MenuItemNotFoundError(menu_item_id)
        return item

    def _bump_menu_item(self, item: MenuItem, event_type: str, actor_id: str | None) -> None:
        RevisionService(self._db).bump(
            RevisionEntity.MENU_ITEM,
            item.id,
            event_type,
            {
                "menu_item_id": item.id,
                "name": item.name,
                "is_available": item.is_available,
                "admin_enabled": item.admin_enabled,
                "actor_id": actor_id,
            },
        )
