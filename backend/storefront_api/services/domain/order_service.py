"""
Order Domain Service.

Owns the order lifecycle and its stock side effects:

    place_order   customer -> order -> lines -> stock -> coupon claim, one transaction
    cancel_order  restore the stock the order took, then soft delete it
    update_order_status  staff transitions along ORDER_TRANSITIONS

All stock keys an operation touches are locked up front (sorted) and held
until commit, so two checkouts can never both read "2 left" and oversell.
"""

from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront_api.models import (
    Customer,
    MenuItem,
    Order,
    OrderLine,
    StockItem,
    StockReservation,
    utcnow,
)
from storefront_api.services.domain.availability_service import AvailabilityService
from storefront_api.services.domain.loyalty_service import LoyaltyService
from storefront_api.services.domain.revision_service import RevisionService
from storefront_api.services.domain.stock_ledger import StockLedger
from shared.config.constants import (
    ORDER_TRANSITIONS,
    OrderLineKind,
    OrderStatus,
    RevisionEntity,
)
from shared.config.logging import orders_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import ORDER_CANCELLED, ORDER_PLACED, ORDER_STATUS_CHANGED
from shared.infrastructure.locks import (
    catalog_lock_key,
    get_lock_registry,
    loyalty_lock_key,
    stock_lock_key,
)
from shared.utils.exceptions import (
    AppException,
    DatabaseError,
    InvalidTransitionError,
    MenuItemNotFoundError,
    OrderNotFoundError,
    PaymentNotConfirmedError,
    StockInsufficientError,
    StockWriteFailure,
    ValidationError,
)
from shared.utils.schemas import CartLine, PaymentConfirmation


@dataclass
class _PlannedLine:
    """A cart line flattened and priced, not yet persisted."""

    menu_item: MenuItem
    kind: str
    quantity: int
    children: list["_PlannedLine"]

    @property
    def total_cents(self) -> int:
        own = self.quantity * self.menu_item.price_cents
        return own + sum(child.total_cents for child in self.children)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


class OrderService:
    """
    Domain service for order placement, cancellation and status changes.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self._db = db
        self._clock = clock
        self._locks = get_lock_registry()
        self._ledger = StockLedger(db)
        self._availability = AvailabilityService(db)
        self._loyalty = LoyaltyService(db, clock=clock)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_order(self, order_id: int, include_cancelled: bool = True) -> Order:
        query = (
            select(Order)
            .options(selectinload(Order.lines), selectinload(Order.reservations))
            .where(Order.id == order_id)
        )
        if not include_cancelled:
            query = query.where(Order.is_active.is_(True))
        order = self._db.scalar(query)
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(
        self,
        customer_id: str | None = None,
        statuses: Sequence[str] | None = None,
        include_cancelled: bool = False,
        limit: int = 100,
    ) -> list[Order]:
        query = (
            select(Order)
            .options(selectinload(Order.lines))
            .order_by(Order.order_date.desc(), Order.id.desc())
            .limit(limit)
        )
        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)
        if statuses:
            query = query.where(Order.status.in_(list(statuses)))
        if not include_cancelled:
            query = query.where(Order.is_active.is_(True))
        return list(self._db.execute(query).scalars().all())

    # =========================================================================
    # Placement
    # =========================================================================

    def place_order(
        self,
        customer_id: str,
        cart_lines: Sequence[CartLine],
        applied_coupon_claim_id: int | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        payment: PaymentConfirmation | None = None,
    ) -> Order:
        """
        Create an order, take its stock and redeem its coupon claim atomically.

        payment is the confirmation from the payment step; an unsuccessful
        one is rejected before anything is written. Staff-entered orders
        may omit it.

        Raises:
            ValidationError: empty cart, bad quantity, disabled menu item
            MenuItemNotFoundError: unknown menu item
            CouponExpiredOrUsedError: claim used, expired or not this customer's
            StockInsufficientError: not enough stock across both sites
            StockWriteFailure / DatabaseError: store failure, nothing persisted
        """
        if payment is not None and not payment.success:
            raise PaymentNotConfirmedError(payment.payment_id, customer_id=customer_id)

        planned = self._plan_lines(cart_lines)
        subtotal = sum(line.total_cents for line in planned)
        needs = self._stock_needs(planned)

        keys = [loyalty_lock_key(customer_id), catalog_lock_key()]
        keys += [stock_lock_key(name) for name in needs]

        with self._locks.acquire_many(keys):
            phase = "order placement"
            try:
                claim = None
                discount = 0
                if applied_coupon_claim_id is not None:
                    claim = self._loyalty.verify_live(applied_coupon_claim_id, customer_id)
                    discount = self._loyalty.discount_for(claim, subtotal)

                if settings.reject_insufficient_stock:
                    self._check_sufficiency(needs)

                customer = self._ensure_customer(customer_id, customer_name, customer_email)

                now = self._clock()
                order = Order(
                    customer_id=customer.id,
                    customer_name=customer_name or customer.name,
                    customer_email=customer_email or customer.email,
                    subtotal_cents=subtotal,
                    discount_cents=discount,
                    total_cents=subtotal - discount,
                    coupon_claim_id=claim.id if claim else None,
                    status=OrderStatus.PENDING,
                    order_date=now,
                    estimated_delivery=now + timedelta(minutes=settings.order_estimated_delivery_minutes),
                    notes=notes,
                    payment_id=payment.payment_id if payment else None,
                    created_by=customer_id,
                )
                self._db.add(order)
                self._db.flush()
                order.display_id = str(order.id).zfill(settings.order_display_id_width)

                for line in planned:
                    self._insert_line(order, line, parent_id=None)

                phase = "stock deduction"
                for name in sorted(needs):
                    self._reserve(order, name, needs[name])

                phase = "order placement"
                if claim is not None:
                    self._loyalty.apply_to_order(claim, order.id)

                self._availability.recompute_all()
                RevisionService(self._db).bump(
                    RevisionEntity.ORDER,
                    order.id,
                    ORDER_PLACED,
                    self._order_payload(order),
                )
                safe_commit(self._db)

            except AppException:
                self._db.rollback()
                raise
            except SQLAlchemyError as e:
                self._db.rollback()
                if phase == "stock deduction":
                    raise StockWriteFailure(phase, customer_id=customer_id, error=str(e)) from e
                raise DatabaseError(phase, customer_id=customer_id, error=str(e)) from e

        logger.info(
            "Order placed",
            order_id=order.id,
            display_id=order.display_id,
            customer_id=customer_id,
            subtotal_cents=subtotal,
            discount_cents=discount,
            total_cents=order.total_cents,
            coupon_claim_id=order.coupon_claim_id,
            stock=dict(needs),
        )
        return order

    def _plan_lines(self, cart_lines: Sequence[CartLine]) -> list[_PlannedLine]:
        if not cart_lines:
            raise ValidationError("Cart is empty")

        wanted: set[int] = set()
        for line in cart_lines:
            wanted.add(line.menu_item_id)
            wanted.update(sub.menu_item_id for sub in line.add_ons)
            wanted.update(sub.menu_item_id for sub in line.drinks)

        items = {
            item.id: item
            for item in self._db.execute(
                select(MenuItem).where(MenuItem.id.in_(wanted), MenuItem.is_active.is_(True))
            ).scalars().all()
        }

        def resolve(menu_item_id: int) -> MenuItem:
            item = items.get(menu_item_id)
            if item is None:
                raise MenuItemNotFoundError(menu_item_id)
            if not item.admin_enabled:
                raise ValidationError(
                    f"'{item.name}' is not available", menu_item_id=menu_item_id
                )
            return item

        planned = []
        for line in cart_lines:
            if line.quantity <= 0:
                raise ValidationError(
                    "Quantity must be positive", menu_item_id=line.menu_item_id, quantity=line.quantity
                )
            children = []
            for kind, subs in ((OrderLineKind.ADD_ON, line.add_ons), (OrderLineKind.DRINK, line.drinks)):
                for sub in subs:
                    if sub.quantity <= 0:
                        raise ValidationError(
                            "Quantity must be positive", menu_item_id=sub.menu_item_id, quantity=sub.quantity
                        )
                    # Sub-line quantities are per unit of the main item
                    children.append(
                        _PlannedLine(resolve(sub.menu_item_id), kind, sub.quantity * line.quantity, [])
                    )
            planned.append(_PlannedLine(resolve(line.menu_item_id), OrderLineKind.ITEM, line.quantity, children))
        return planned

    def _stock_needs(self, planned: list[_PlannedLine]) -> dict[str, int]:
        """Total quantity of each stock item the flattened lines consume."""
        flat = [line for top in planned for line in top.walk()]
        requirements = self._availability.requirements_map(line.menu_item.id for line in flat)
        needs: dict[str, int] = defaultdict(int)
        for line in flat:
            for req in requirements.get(line.menu_item.id, []):
                needs[req.stock_item_name] += req.quantity_per_unit * line.quantity
        return dict(needs)

    def _check_sufficiency(self, needs: dict[str, int]) -> None:
        """Re-check stock under the locks held for deduction."""
        for name in sorted(needs):
            self._db.flush()
            item = self._db.scalar(
                select(StockItem)
                .where(StockItem.name == name, StockItem.is_active.is_(True))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            available = item.total_quantity if item else 0
            if available < needs[name]:
                raise StockInsufficientError(name, needs[name], available)

    def _ensure_customer(
        self,
        customer_id: str,
        name: str | None,
        email: str | None,
    ) -> Customer:
        customer = self._db.get(Customer, customer_id)
        if customer is None:
            customer = Customer(id=customer_id, name=name, email=email, created_by=customer_id)
            self._db.add(customer)
            self._db.flush()
            logger.info("Customer record created", customer_id=customer_id)
        else:
            if name and not customer.name:
                customer.name = name
            if email and not customer.email:
                customer.email = email
        return customer

    def _insert_line(self, order: Order, line: _PlannedLine, parent_id: int | None) -> None:
        row = OrderLine(
            order_id=order.id,
            menu_item_id=line.menu_item.id,
            parent_line_id=parent_id,
            kind=line.kind,
            item_name=line.menu_item.name,
            quantity=line.quantity,
            unit_price_cents=line.menu_item.price_cents,
        )
        self._db.add(row)
        if line.children:
            self._db.flush()
            for child in line.children:
                self._insert_line(order, child, parent_id=row.id)

    def _reserve(self, order: Order, stock_item_name: str, quantity: int) -> None:
        if not settings.reject_insufficient_stock:
            exists = self._db.scalar(
                select(StockItem.id).where(
                    StockItem.name == stock_item_name, StockItem.is_active.is_(True)
                )
            )
            if exists is None:
                logger.warning(
                    "Stock item missing, nothing deducted",
                    stock_item=stock_item_name,
                    order_id=order.id,
                )
                return

        taken = self._ledger.deduct(
            stock_item_name,
            quantity,
            allow_shortfall=not settings.reject_insufficient_stock,
        )
        self._db.add(
            StockReservation(
                order_id=order.id,
                stock_item_name=stock_item_name,
                required_quantity=quantity,
                active_taken=taken.active_taken,
                reserve_taken=taken.reserve_taken,
            )
        )

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel_order(self, order_id: int, actor_id: str | None = None) -> Order:
        """
        Cancel an order: give its stock back, then soft delete it and its lines.

        Idempotent: cancelled_at marks an order whose stock was restored, and
        a repeat call is a no-op. Delivered orders cannot be cancelled.
        """
        return self._cancel(order_id, actor_id, soft_delete=True)

    def _cancel(self, order_id: int, actor_id: str | None, soft_delete: bool) -> Order:
        order = self.get_order(order_id)
        keys = [catalog_lock_key()] + [stock_lock_key(r.stock_item_name) for r in order.reservations]

        with self._locks.acquire_many(keys):
            try:
                self._db.refresh(order)
                if order.cancelled_at is not None:
                    if soft_delete and order.is_active:
                        for line in order.lines:
                            line.soft_delete(actor_id)
                        order.soft_delete(actor_id)
                        safe_commit(self._db)
                        logger.info("Cancelled order removed, stock already restored", order_id=order_id)
                    else:
                        logger.info("Order already cancelled, nothing restored", order_id=order_id)
                    return order
                if order.status not in ORDER_TRANSITIONS or OrderStatus.CANCELLED not in ORDER_TRANSITIONS[order.status]:
                    raise InvalidTransitionError("order", order.status, OrderStatus.CANCELLED, order_id=order_id)

                restored = self._restore_stock(order)
                previous = order.status
                order.status = OrderStatus.CANCELLED
                order.cancelled_at = self._clock()
                order.set_updated_by(actor_id)
                if soft_delete:
                    for line in order.lines:
                        line.soft_delete(actor_id)
                    order.soft_delete(actor_id)

                self._availability.recompute_all()
                RevisionService(self._db).bump(
                    RevisionEntity.ORDER,
                    order.id,
                    ORDER_CANCELLED,
                    {**self._order_payload(order), "previous_status": previous, "actor_id": actor_id},
                )
                safe_commit(self._db)

            except AppException:
                self._db.rollback()
                raise
            except SQLAlchemyError as e:
                self._db.rollback()
                raise StockWriteFailure("order cancellation", order_id=order_id, error=str(e)) from e

        logger.info(
            "Order cancelled",
            order_id=order_id,
            previous_status=previous,
            restored=restored,
            soft_deleted=soft_delete,
        )
        return order

    def _restore_stock(self, order: Order) -> dict[str, int]:
        restored: dict[str, int] = {}
        for reservation in order.reservations:
            if reservation.restored_at is not None:
                continue
            self._ledger.restore(
                reservation.stock_item_name,
                active_quantity=reservation.active_taken,
                reserve_quantity=reservation.reserve_taken,
            )
            reservation.restored_at = self._clock()
            restored[reservation.stock_item_name] = reservation.active_taken + reservation.reserve_taken
        return restored

    # =========================================================================
    # Status
    # =========================================================================

    def update_order_status(
        self,
        order_id: int,
        new_status: str,
        actor_id: str | None = None,
    ) -> Order:
        """
        Move an order along the status graph.

        Moving to cancelled restores stock like cancel_order but keeps the
        order visible in history.
        """
        if new_status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status '{new_status}'", order_id=order_id)
        if new_status == OrderStatus.CANCELLED:
            return self._cancel(order_id, actor_id, soft_delete=False)

        order = self.get_order(order_id, include_cancelled=False)
        allowed = ORDER_TRANSITIONS.get(order.status, frozenset())
        if new_status not in allowed:
            raise InvalidTransitionError("order", order.status, new_status, order_id=order_id)

        previous = order.status
        order.status = new_status
        order.set_updated_by(actor_id)
        RevisionService(self._db).bump(
            RevisionEntity.ORDER,
            order.id,
            ORDER_STATUS_CHANGED,
            {**self._order_payload(order), "previous_status": previous, "actor_id": actor_id},
        )
        safe_commit(self._db)

        logger.info(
            "Order status changed",
            order_id=order_id,
            from_status=previous,
            to_status=new_status,
            actor_id=actor_id,
        )
        return order

    # =========================================================================
    # Helpers
    # =========================================================================

    def _order_payload(self, order: Order) -> dict:
        return {
            "order_id": order.id,
            "display_id": order.display_id,
            "customer_id": order.customer_id,
            "status": order.status,
            "total_cents": order.total_cents,
        }
