"""
Stock Ledger Domain Service.

The authoritative count of every stock item at the reserve and active
sites. Pure counter store: business meaning lives in the order service.

Every committed write bumps the stock item's revision and recomputes menu
availability before returning, so callers never read a stale flag.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront_api.models import StockItem
from storefront_api.services.domain.availability_service import AvailabilityService
from storefront_api.services.domain.revision_service import RevisionService
from shared.config.constants import Limits, RevisionEntity
from shared.config.logging import stock_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import STOCK_ADJUSTED
from shared.infrastructure.locks import catalog_lock_key, get_lock_registry, stock_lock_key
from shared.utils.exceptions import (
    DuplicateEntityError,
    StockItemNotFoundError,
    StockWriteFailure,
    ValidationError,
)


@dataclass(frozen=True)
class Deduction:
    """What a deduction actually took from each site."""

    stock_item_name: str
    required: int
    active_taken: int
    reserve_taken: int

    @property
    def shortfall(self) -> int:
        return self.required - self.active_taken - self.reserve_taken


def _clamp(value: int) -> int:
    return value if value > 0 else 0


def _check_deltas(stock_item_name: str, *deltas: int) -> None:
    for delta in deltas:
        if abs(delta) > Limits.MAX_STOCK_DELTA:
            raise ValidationError(
                f"Stock delta must be within ±{Limits.MAX_STOCK_DELTA}",
                stock_item=stock_item_name,
                delta=delta,
            )


class StockLedger:
    """
    Domain service for stock counts.

    Public writes (adjust, set_counts) take the locks and commit.
    deduct() and restore() join the caller's transaction and expect the
    caller to hold the stock item's lock; the order service uses them so an
    order and its stock change commit together.
    """

    def __init__(self, db: Session):
        self._db = db
        self._locks = get_lock_registry()

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, stock_item_name: str) -> StockItem:
        item = self._db.scalar(
            select(StockItem).where(
                StockItem.name == stock_item_name,
                StockItem.is_active.is_(True),
            )
        )
        if not item:
            raise StockItemNotFoundError(stock_item_name)
        return item

    def list_all(self) -> list[StockItem]:
        return list(
            self._db.execute(
                select(StockItem)
                .where(StockItem.is_active.is_(True))
                .order_by(StockItem.category, StockItem.name)
            ).scalars().all()
        )

    def totals(self) -> dict[str, int]:
        """Total sellable stock (reserve + active) per item name."""
        rows = self._db.execute(
            select(StockItem.name, StockItem.reserve_quantity, StockItem.active_quantity)
            .where(StockItem.is_active.is_(True))
        ).all()
        return {name: reserve + active for name, reserve, active in rows}

    def low_stock(self, threshold: int | None = None) -> list[StockItem]:
        """Items whose total is under the threshold (low_stock_threshold by default)."""
        limit = settings.low_stock_threshold if threshold is None else threshold
        return [item for item in self.list_all() if item.total_quantity < limit]

    def _get_for_update(self, stock_item_name: str) -> StockItem:
        # Pending edits would be overwritten by populate_existing
        self._db.flush()
        item = self._db.scalar(
            select(StockItem)
            .where(
                StockItem.name == stock_item_name,
                StockItem.is_active.is_(True),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if not item:
            raise StockItemNotFoundError(stock_item_name)
        return item

    # =========================================================================
    # Committing writes
    # =========================================================================

    def create_item(
        self,
        name: str,
        category: str,
        reserve_quantity: int = 0,
        active_quantity: int = 0,
        supplier: str | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> StockItem:
        name = name.strip()
        if not name:
            raise ValidationError("Stock item name is required", field="name")
        if reserve_quantity < 0 or active_quantity < 0:
            raise ValidationError("Stock quantities cannot be negative", stock_item=name)

        with self._locks.acquire_many([catalog_lock_key(), stock_lock_key(name)]):
            existing = self._db.scalar(select(StockItem).where(StockItem.name == name))
            if existing:
                raise DuplicateEntityError("Stock item", name)

            item = StockItem(
                name=name,
                category=category,
                reserve_quantity=reserve_quantity,
                active_quantity=active_quantity,
                supplier=supplier,
                notes=notes,
                created_by=actor_id,
            )
            self._db.add(item)
            self._db.flush()
            self._after_write(item, actor_id)
            safe_commit(self._db)

        logger.info(
            "Stock item created",
            stock_item=name,
            reserve=reserve_quantity,
            active=active_quantity,
        )
        return item

    def adjust(
        self,
        stock_item_name: str,
        delta_reserve: int,
        delta_active: int,
        actor_id: str | None = None,
    ) -> StockItem:
        """
        Apply deltas to both sites, clamping each quantity at zero.

        Returns the new state after the change and the availability
        recomputation are committed.
        """
        _check_deltas(stock_item_name, delta_reserve, delta_active)

        with self._locks.acquire_many([catalog_lock_key(), stock_lock_key(stock_item_name)]):
            try:
                item = self._get_for_update(stock_item_name)
                before = (item.reserve_quantity, item.active_quantity)
                item.reserve_quantity = _clamp(item.reserve_quantity + delta_reserve)
                item.active_quantity = _clamp(item.active_quantity + delta_active)
                item.set_updated_by(actor_id)
                self._after_write(item, actor_id)
                safe_commit(self._db)
            except SQLAlchemyError as e:
                self._db.rollback()
                raise StockWriteFailure(
                    "stock adjustment", stock_item=stock_item_name, error=str(e)
                ) from e

        logger.info(
            "Stock adjusted",
            stock_item=stock_item_name,
            delta_reserve=delta_reserve,
            delta_active=delta_active,
            reserve_before=before[0],
            active_before=before[1],
            reserve=item.reserve_quantity,
            active=item.active_quantity,
        )
        return item

    def set_counts(
        self,
        stock_item_name: str,
        reserve_quantity: int | None = None,
        active_quantity: int | None = None,
        signed_reserve_by: str | None = None,
        signed_active_by: str | None = None,
        actor_id: str | None = None,
    ) -> StockItem:
        """
        Record a physical count. Staff sign off each site they counted.
        """
        if (reserve_quantity is not None and reserve_quantity < 0) or (
            active_quantity is not None and active_quantity < 0
        ):
            raise ValidationError("Stock counts cannot be negative", stock_item=stock_item_name)

        with self._locks.acquire_many([catalog_lock_key(), stock_lock_key(stock_item_name)]):
            item = self._get_for_update(stock_item_name)
            delta_reserve = 0 if reserve_quantity is None else reserve_quantity - item.reserve_quantity
            delta_active = 0 if active_quantity is None else active_quantity - item.active_quantity
            _check_deltas(stock_item_name, delta_reserve, delta_active)
            if signed_reserve_by is not None:
                item.signed_reserve_by = signed_reserve_by
            if signed_active_by is not None:
                item.signed_active_by = signed_active_by
            # Re-entrant: adjust takes the same keys and commits
            return self.adjust(stock_item_name, delta_reserve, delta_active, actor_id=actor_id)

    def update_metadata(
        self,
        stock_item_name: str,
        category: str | None = None,
        supplier: str | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> StockItem:
        """Edit descriptive fields. Counts are untouched, so availability is not recomputed."""
        with self._locks.acquire(stock_lock_key(stock_item_name)):
            item = self._get_for_update(stock_item_name)
            if category is not None:
                item.category = category
            if supplier is not None:
                item.supplier = supplier
            if notes is not None:
                item.notes = notes
            item.set_updated_by(actor_id)
            RevisionService(self._db).bump(
                RevisionEntity.STOCK_ITEM,
                item.name,
                STOCK_ADJUSTED,
                self._payload(item, actor_id),
            )
            safe_commit(self._db)
        return item

    # =========================================================================
    # Transaction-joining writes (caller holds the lock and commits)
    # =========================================================================

    def deduct(self, stock_item_name: str, quantity: int, allow_shortfall: bool) -> Deduction:
        """
        Take quantity from the active site first, then the reserve site.

        With allow_shortfall the remainder that neither site can cover is
        dropped (quantities floor at zero); otherwise the caller is expected
        to have checked sufficiency and a shortfall is a ValueError.
        """
        item = self._get_for_update(stock_item_name)
        active_taken = min(item.active_quantity, quantity)
        reserve_taken = min(item.reserve_quantity, quantity - active_taken)
        result = Deduction(stock_item_name, quantity, active_taken, reserve_taken)
        if result.shortfall and not allow_shortfall:
            raise ValueError(
                f"Deduction of {quantity} '{stock_item_name}' exceeds stock by {result.shortfall}"
            )

        item.active_quantity -= active_taken
        item.reserve_quantity -= reserve_taken
        self._bump(item, None)
        if result.shortfall:
            logger.warning(
                "Stock deduction clamped at zero",
                stock_item=stock_item_name,
                required=quantity,
                shortfall=result.shortfall,
            )
        return result

    def restore(self, stock_item_name: str, active_quantity: int, reserve_quantity: int) -> StockItem:
        """Give back exactly what a deduction took."""
        item = self._get_for_update(stock_item_name)
        item.active_quantity += active_quantity
        item.reserve_quantity += reserve_quantity
        self._bump(item, None)
        return item

    # =========================================================================
    # Helpers
    # =========================================================================

    def _payload(self, item: StockItem, actor_id: str | None) -> dict:
        return {
            "name": item.name,
            "reserve_quantity": item.reserve_quantity,
            "active_quantity": item.active_quantity,
            "total_quantity": item.total_quantity,
            "actor_id": actor_id,
        }

    def _bump(self, item: StockItem, actor_id: str | None) -> None:
        RevisionService(self._db).bump(
            RevisionEntity.STOCK_ITEM,
            item.name,
            STOCK_ADJUSTED,
            self._payload(item, actor_id),
        )

    def _after_write(self, item: StockItem, actor_id: str | None) -> None:
        self._db.flush()
        self._bump(item, actor_id)
        AvailabilityService(self._db).recompute_all()
