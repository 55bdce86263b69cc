"""
Loyalty Domain Service.

Points are never stored. A customer's balance is a projection over their
history:

    balance = floor(delivered spend / spend_per_point) - points on live or used claims

Claims that expired unused no longer count against the balance.

Coupon value payloads, by type:
    percent_off         "15"
    min_order_discount  {"minOrder": 20, "discount": 5, "discountType": "fixed" | "percent"}
    free_item, bogo     [3, 7]  (menu item IDs; the cheapest price is discounted)

Amounts inside payloads are in currency units, everything else is cents.
"""

import json
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from storefront_api.models import (
    Coupon,
    Customer,
    CustomerCoupon,
    MenuItem,
    Order,
    as_utc,
    utcnow,
)
from storefront_api.services.domain.revision_service import RevisionService
from shared.config.constants import CouponType, DiscountType, OrderStatus, RevisionEntity
from shared.config.logging import loyalty_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import COUPON_CLAIMED, COUPON_REDEEMED
from shared.infrastructure.locks import get_lock_registry, loyalty_lock_key
from shared.utils.exceptions import (
    ClaimNotFoundError,
    CouponExpiredOrUsedError,
    CouponNotFoundError,
    CustomerNotFoundError,
    DailyLimitExceededError,
    InsufficientPointsError,
    ValidationError,
)

_CENT = Decimal("1")


# =============================================================================
# Coupon value payloads
# =============================================================================


class MinOrderDiscountValue(BaseModel):
    """Decoded min_order_discount payload."""

    model_config = ConfigDict(populate_by_name=True)

    min_order: Decimal = Field(alias="minOrder", gt=0)
    discount: Decimal = Field(gt=0)
    discount_type: str = Field(alias="discountType", default=DiscountType.FIXED)


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(_CENT, rounding=ROUND_HALF_UP))


def _percent_of(total_cents: int, percent: Decimal) -> int:
    return int((Decimal(total_cents) * percent / 100).quantize(_CENT, rounding=ROUND_HALF_UP))


def decode_coupon_value(coupon_type: str, value: str) -> Any:
    """
    Parse and validate a coupon payload.

    Returns a Decimal percent, a MinOrderDiscountValue, or a list of menu
    item IDs depending on the type. Raises ValidationError when malformed.
    """
    if coupon_type not in CouponType.ALL:
        raise ValidationError(f"Unknown coupon type '{coupon_type}'", coupon_type=coupon_type)

    try:
        if coupon_type == CouponType.PERCENT_OFF:
            percent = Decimal(str(value).strip())
            if not (0 < percent <= 100):
                raise ValidationError("Percentage must be between 0 and 100", value=value)
            return percent

        if coupon_type == CouponType.MIN_ORDER_DISCOUNT:
            decoded = MinOrderDiscountValue.model_validate_json(value)
            if decoded.discount_type not in (DiscountType.FIXED, DiscountType.PERCENT):
                raise ValidationError(
                    f"Unknown discount type '{decoded.discount_type}'", value=value
                )
            if decoded.discount_type == DiscountType.PERCENT and decoded.discount > 100:
                raise ValidationError("Percentage must be between 0 and 100", value=value)
            return decoded

        item_ids = json.loads(value)
        if (
            not isinstance(item_ids, list)
            or not item_ids
            or not all(isinstance(i, int) and not isinstance(i, bool) for i in item_ids)
        ):
            raise ValidationError("Select at least one menu item", value=value)
        return item_ids

    except (InvalidOperation, json.JSONDecodeError, PydanticValidationError) as e:
        raise ValidationError(
            f"Malformed value for {coupon_type} coupon", value=value, error=str(e)
        ) from e


def claim_state(claim: CustomerCoupon, now: datetime) -> str:
    """'used', 'expired' or 'live'."""
    if claim.is_used:
        return "used"
    if as_utc(claim.expires_at) <= now:
        return "expired"
    return "live"


class LoyaltyService:
    """
    Domain service for points, coupons and claims.

    Claims and redemptions for one customer are serialized by the
    loyalty:<customer_id> lock; the daily cap is also backed by the
    unique (customer, coupon, day, slot) constraint.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self._db = db
        self._clock = clock
        self._locks = get_lock_registry()

    # =========================================================================
    # Points
    # =========================================================================

    def delivered_spend_cents(self, customer_id: str) -> int:
        return self._db.scalar(
            select(func.coalesce(func.sum(Order.total_cents), 0)).where(
                Order.customer_id == customer_id,
                Order.status == OrderStatus.DELIVERED,
                Order.is_active.is_(True),
            )
        ) or 0

    def committed_points(self, customer_id: str) -> int:
        """Points held by live claims or spent on used ones."""
        now = self._clock()
        return self._db.scalar(
            select(func.coalesce(func.sum(CustomerCoupon.points_spent), 0)).where(
                CustomerCoupon.customer_id == customer_id,
                or_(
                    CustomerCoupon.is_used.is_(True),
                    CustomerCoupon.expires_at > now,
                ),
            )
        ) or 0

    def earned_points(self, customer_id: str) -> int:
        return self.delivered_spend_cents(customer_id) // settings.loyalty_spend_per_point_cents

    def points_balance(self, customer_id: str) -> int:
        """Current balance. Unknown customers have zero."""
        return self.earned_points(customer_id) - self.committed_points(customer_id)

    def loyalty_summary(self, customer_id: str) -> dict[str, int]:
        """The parts of the balance, for audit and reconciliation screens."""
        spend = self.delivered_spend_cents(customer_id)
        earned = spend // settings.loyalty_spend_per_point_cents
        committed = self.committed_points(customer_id)
        return {
            "delivered_spend_cents": spend,
            "earned_points": earned,
            "committed_points": committed,
            "balance": earned - committed,
        }

    # =========================================================================
    # Coupon catalog
    # =========================================================================

    def list_coupons(self, active_only: bool = True) -> list[Coupon]:
        query = select(Coupon).order_by(Coupon.points_cost, Coupon.id)
        if active_only:
            query = query.where(Coupon.is_active.is_(True))
        return list(self._db.execute(query).scalars().all())

    def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = self._db.get(Coupon, coupon_id)
        if not coupon:
            raise CouponNotFoundError(coupon_id)
        return coupon

    def create_coupon(
        self,
        name: str,
        coupon_type: str,
        value: str,
        points_cost: int,
        duration_hours: int = 24,
        max_per_account_per_day: int = 1,
        description: str | None = None,
        is_active: bool = True,
    ) -> Coupon:
        self._validate_coupon(name, coupon_type, value, points_cost, duration_hours, max_per_account_per_day)
        coupon = Coupon(
            name=name.strip(),
            description=description,
            type=coupon_type,
            value=value,
            points_cost=points_cost,
            duration_hours=duration_hours,
            max_per_account_per_day=max_per_account_per_day,
            is_active=is_active,
        )
        self._db.add(coupon)
        safe_commit(self._db)
        logger.info("Coupon created", coupon_id=coupon.id, coupon_type=coupon_type, points_cost=points_cost)
        return coupon

    def update_coupon(self, coupon_id: int, **changes: Any) -> Coupon:
        """Edit catalog fields. Existing claims keep the points they were charged."""
        coupon = self.get_coupon(coupon_id)
        allowed = {
            "name", "description", "type", "value", "points_cost",
            "duration_hours", "max_per_account_per_day", "is_active",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown coupon fields: {', '.join(sorted(unknown))}")

        merged = {field: changes.get(field, getattr(coupon, field)) for field in allowed}
        self._validate_coupon(
            merged["name"], merged["type"], merged["value"], merged["points_cost"],
            merged["duration_hours"], merged["max_per_account_per_day"],
        )
        for field, value in changes.items():
            setattr(coupon, field, value)
        safe_commit(self._db)
        logger.info("Coupon updated", coupon_id=coupon_id, fields=sorted(changes))
        return coupon

    def _validate_coupon(
        self,
        name: str,
        coupon_type: str,
        value: str,
        points_cost: int,
        duration_hours: int,
        max_per_account_per_day: int,
    ) -> None:
        if not name or not name.strip():
            raise ValidationError("Coupon name is required", field="name")
        if points_cost <= 0:
            raise ValidationError("Points cost must be greater than 0", field="points_cost")
        if duration_hours <= 0:
            raise ValidationError("Duration must be at least one hour", field="duration_hours")
        if max_per_account_per_day <= 0:
            raise ValidationError("Daily limit must be at least 1", field="max_per_account_per_day")
        decode_coupon_value(coupon_type, value)

    # =========================================================================
    # Claims
    # =========================================================================

    def claim_coupon(self, customer_id: str, coupon_id: int) -> CustomerCoupon:
        """
        Spend points on a coupon.

        Raises InsufficientPointsError when the balance is below the cost and
        DailyLimitExceededError when the customer already holds
        max_per_account_per_day claims of it since local midnight.
        """
        with self._locks.acquire(loyalty_lock_key(customer_id)):
            if self._db.get(Customer, customer_id) is None:
                raise CustomerNotFoundError(customer_id)
            coupon = self.get_coupon(coupon_id)
            if not coupon.is_active:
                raise CouponNotFoundError(coupon_id, reason="inactive")

            balance = self.points_balance(customer_id)
            if balance < coupon.points_cost:
                raise InsufficientPointsError(
                    balance, coupon.points_cost, customer_id=customer_id, coupon_id=coupon_id
                )

            now = self._clock()
            claim_day = now.astimezone(ZoneInfo(settings.business_timezone)).date()
            claimed_today = self._db.scalar(
                select(func.count(CustomerCoupon.id)).where(
                    CustomerCoupon.customer_id == customer_id,
                    CustomerCoupon.coupon_id == coupon_id,
                    CustomerCoupon.claim_day == claim_day,
                )
            ) or 0
            if claimed_today >= coupon.max_per_account_per_day:
                raise DailyLimitExceededError(
                    coupon_id, coupon.max_per_account_per_day, customer_id=customer_id
                )

            claim = CustomerCoupon(
                customer_id=customer_id,
                coupon_id=coupon_id,
                claimed_at=now,
                claim_day=claim_day,
                claim_slot=claimed_today,
                expires_at=now + timedelta(hours=coupon.duration_hours),
                points_spent=coupon.points_cost,
                is_used=False,
            )
            self._db.add(claim)
            try:
                self._db.flush()
            except IntegrityError as e:
                # Another process took this slot between our count and insert
                self._db.rollback()
                raise DailyLimitExceededError(
                    coupon_id, coupon.max_per_account_per_day, customer_id=customer_id
                ) from e

            RevisionService(self._db).bump(
                RevisionEntity.CUSTOMER_CLAIMS,
                customer_id,
                COUPON_CLAIMED,
                {
                    "customer_id": customer_id,
                    "claim_id": claim.id,
                    "coupon_id": coupon_id,
                    "points_spent": coupon.points_cost,
                },
            )
            safe_commit(self._db)

        logger.info(
            "Coupon claimed",
            customer_id=customer_id,
            coupon_id=coupon_id,
            claim_id=claim.id,
            points_spent=claim.points_spent,
            balance_after=balance - coupon.points_cost,
        )
        return claim

    def list_claims(self, customer_id: str, include_inactive: bool = True) -> list[CustomerCoupon]:
        """A customer's claims, newest first. include_inactive=False keeps only live ones."""
        query = (
            select(CustomerCoupon)
            .options(joinedload(CustomerCoupon.coupon))
            .where(CustomerCoupon.customer_id == customer_id)
            .order_by(CustomerCoupon.claimed_at.desc(), CustomerCoupon.id.desc())
        )
        if not include_inactive:
            query = query.where(
                CustomerCoupon.is_used.is_(False),
                CustomerCoupon.expires_at > self._clock(),
            )
        return list(self._db.execute(query).scalars().all())

    def get_claim(self, claim_id: int) -> CustomerCoupon:
        claim = self._db.scalar(
            select(CustomerCoupon)
            .options(joinedload(CustomerCoupon.coupon))
            .where(CustomerCoupon.id == claim_id)
            .execution_options(populate_existing=True)
        )
        if not claim:
            raise ClaimNotFoundError(claim_id)
        return claim

    def verify_live(self, claim_id: int, customer_id: str) -> CustomerCoupon:
        """Load a claim and ensure this customer may apply it now."""
        claim = self.get_claim(claim_id)
        if claim.customer_id != customer_id:
            raise CouponExpiredOrUsedError(
                claim_id, "belongs to another customer", customer_id=customer_id
            )
        state = claim_state(claim, self._clock())
        if state != "live":
            raise CouponExpiredOrUsedError(claim_id, state, customer_id=customer_id)
        return claim

    # =========================================================================
    # Discounts
    # =========================================================================

    def discount_for(self, claim: CustomerCoupon, cart_total_cents: int) -> int:
        """
        Discount in cents a claim yields on a cart total.

        Never more than the total, so a discounted total is never negative.
        free_item and bogo take off the cheapest listed item's price without
        checking the cart contains it.
        """
        coupon = claim.coupon
        payload = decode_coupon_value(coupon.type, coupon.value)

        if coupon.type == CouponType.PERCENT_OFF:
            discount = _percent_of(cart_total_cents, payload)
        elif coupon.type == CouponType.MIN_ORDER_DISCOUNT:
            if cart_total_cents < to_cents(payload.min_order):
                discount = 0
            elif payload.discount_type == DiscountType.PERCENT:
                discount = _percent_of(cart_total_cents, payload.discount)
            else:
                discount = to_cents(payload.discount)
        else:
            discount = self._cheapest_price_cents(payload)

        return max(0, min(discount, cart_total_cents))

    def _cheapest_price_cents(self, menu_item_ids: list[int]) -> int:
        return self._db.scalar(
            select(func.min(MenuItem.price_cents)).where(
                MenuItem.id.in_(menu_item_ids),
                MenuItem.is_active.is_(True),
            )
        ) or 0

    # =========================================================================
    # Redemption
    # =========================================================================

    def apply_to_order(self, claim: CustomerCoupon, order_id: int) -> CustomerCoupon:
        """
        Mark a verified claim used by an order, inside the caller's transaction.

        The caller holds the customer's loyalty lock and commits together
        with the order, so a failed order leaves the claim unredeemed.
        """
        if claim.is_used:
            raise CouponExpiredOrUsedError(claim.id, "used", order_id=order_id)
        claim.is_used = True
        claim.used_at = self._clock()
        claim.order_id = order_id
        RevisionService(self._db).bump(
            RevisionEntity.CUSTOMER_CLAIMS,
            claim.customer_id,
            COUPON_REDEEMED,
            {
                "customer_id": claim.customer_id,
                "claim_id": claim.id,
                "coupon_id": claim.coupon_id,
                "order_id": order_id,
            },
        )
        return claim

    def redeem(self, claim_id: int, order_id: int) -> CustomerCoupon:
        """
        Mark a claim used by an existing order. Succeeds at most once per claim.

        The order must belong to the claim's customer and carry no other
        claim. The order records the link; its totals are left as placed.
        """
        claim = self.get_claim(claim_id)
        with self._locks.acquire(loyalty_lock_key(claim.customer_id)):
            claim = self.get_claim(claim_id)
            order = self._db.scalar(
                select(Order).where(Order.id == order_id).with_for_update()
            )
            if order is None:
                raise ValidationError(f"Order {order_id} does not exist", order_id=order_id)
            if order.customer_id != claim.customer_id:
                raise CouponExpiredOrUsedError(
                    claim_id, "order belongs to another customer", order_id=order_id
                )
            if order.coupon_claim_id is not None and order.coupon_claim_id != claim.id:
                raise ValidationError(
                    f"Order {order_id} already carries coupon claim {order.coupon_claim_id}",
                    order_id=order_id,
                    claim_id=claim_id,
                )
            state = claim_state(claim, self._clock())
            if state != "live":
                raise CouponExpiredOrUsedError(claim_id, state, order_id=order_id)
            self.apply_to_order(claim, order_id)
            order.coupon_claim_id = claim.id
            safe_commit(self._db)

        logger.info("Coupon redeemed", claim_id=claim_id, order_id=order_id)
        return claim
