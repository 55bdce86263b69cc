"""
Shared Pydantic schemas used across the application.

Money is always integer cents.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

OrderStatus = Literal["pending", "preparing", "ready", "delivered", "cancelled"]
OrderLineKind = Literal["item", "add_on", "drink"]
CouponType = Literal["free_item", "percent_off", "bogo", "min_order_discount"]
ClaimState = Literal["live", "used", "expired"]


class CurrentUser(BaseModel):
    """Identity handed over by the auth layer."""

    id: str
    email: str | None = None
    name: str | None = None
    is_admin: bool = False


# =============================================================================
# Order Schemas
# =============================================================================


class CartSubLine(BaseModel):
    """An add-on or drink chosen for a main cart line, per unit of the main item."""

    menu_item_id: int
    quantity: int = Field(default=1, ge=1, le=Limits.MAX_LINE_QUANTITY)


class CartLine(BaseModel):
    """A main item in the cart."""

    menu_item_id: int
    quantity: int = Field(ge=1, le=Limits.MAX_LINE_QUANTITY)
    add_ons: list[CartSubLine] = Field(default_factory=list, max_length=Limits.MAX_SUB_LINES)
    drinks: list[CartSubLine] = Field(default_factory=list, max_length=Limits.MAX_SUB_LINES)


class PaymentConfirmation(BaseModel):
    """Opaque result of the payment step."""

    success: bool
    payment_id: str | None = Field(default=None, max_length=120)


class PlaceOrderRequest(BaseModel):
    """Checkout request body."""

    lines: list[CartLine] = Field(min_length=1, max_length=Limits.MAX_CART_LINES)
    coupon_claim_id: int | None = None
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)
    payment: PaymentConfirmation


class StaffOrderRequest(BaseModel):
    """Order keyed in by staff for a customer (phone or counter orders)."""

    customer_id: str = Field(min_length=1, max_length=64)
    customer_name: str | None = Field(default=None, max_length=Limits.MAX_NAME_LENGTH)
    customer_email: str | None = Field(default=None, max_length=255)
    lines: list[CartLine] = Field(min_length=1, max_length=Limits.MAX_CART_LINES)
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)
    payment: PaymentConfirmation | None = None


class OrderLineOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    menu_item_id: int
    parent_line_id: int | None = None
    kind: OrderLineKind
    item_name: str
    quantity: int
    unit_price_cents: int


class OrderOutput(BaseModel):
    """Order with its flattened lines."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    display_id: str | None
    customer_id: str
    customer_name: str | None = None
    status: OrderStatus
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    coupon_claim_id: int | None = None
    order_date: datetime
    estimated_delivery: datetime | None = None
    notes: str | None = None
    payment_id: str | None = None
    cancelled_at: datetime | None = None
    lines: list[OrderLineOutput] = Field(default_factory=list)


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


# =============================================================================
# Stock Schemas
# =============================================================================


class StockItemOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: str
    reserve_quantity: int
    active_quantity: int
    total_quantity: int
    signed_reserve_by: str | None = None
    signed_active_by: str | None = None
    supplier: str | None = None
    notes: str | None = None
    is_low: bool = False


class CreateStockItemRequest(BaseModel):
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    category: str = Field(min_length=1, max_length=60)
    reserve_quantity: int = Field(default=0, ge=0)
    active_quantity: int = Field(default=0, ge=0)
    supplier: str | None = None
    notes: str | None = None


class AdjustStockRequest(BaseModel):
    """Signed deltas per site. Results floor at zero."""

    reserve_delta: int = Field(default=0, ge=-Limits.MAX_STOCK_DELTA, le=Limits.MAX_STOCK_DELTA)
    active_delta: int = Field(default=0, ge=-Limits.MAX_STOCK_DELTA, le=Limits.MAX_STOCK_DELTA)


class StockCountRequest(BaseModel):
    """Absolute counts from a physical stock take, signed by who counted."""

    reserve_quantity: int | None = Field(default=None, ge=0)
    active_quantity: int | None = Field(default=None, ge=0)
    signed_reserve_by: str | None = Field(default=None, max_length=Limits.MAX_NAME_LENGTH)
    signed_active_by: str | None = Field(default=None, max_length=Limits.MAX_NAME_LENGTH)


class UpdateStockItemRequest(BaseModel):
    category: str | None = Field(default=None, max_length=60)
    supplier: str | None = None
    notes: str | None = None


# =============================================================================
# Menu Schemas
# =============================================================================


class RequirementInput(BaseModel):
    stock_item_name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    quantity_per_unit: int = Field(default=1, ge=1)


class SetRequirementsRequest(BaseModel):
    requirements: list[RequirementInput]


class SetEnabledRequest(BaseModel):
    enabled: bool


class MenuItemOutput(BaseModel):
    """Menu item with its stored availability flag."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    price_cents: int
    category: str
    preparation_time: int | None = None
    is_available: bool
    admin_enabled: bool
    hidden_from_customers: bool


class RequirementOutput(BaseModel):
    stock_item_name: str
    quantity_per_unit: int


class MenuItemDetailOutput(MenuItemOutput):
    requirements: list[RequirementOutput] = Field(default_factory=list)


# =============================================================================
# Loyalty Schemas
# =============================================================================


class PointsBalanceOutput(BaseModel):
    customer_id: str
    balance: int
    earned_points: int
    committed_points: int
    delivered_spend_cents: int


class CouponOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    type: CouponType
    value: str
    points_cost: int
    duration_hours: int
    max_per_account_per_day: int
    is_active: bool


class CreateCouponRequest(BaseModel):
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    description: str | None = None
    type: CouponType
    value: str
    points_cost: int = Field(gt=0)
    duration_hours: int = Field(default=24, gt=0)
    max_per_account_per_day: int = Field(default=1, gt=0)
    is_active: bool = True


class UpdateCouponRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    description: str | None = None
    type: CouponType | None = None
    value: str | None = None
    points_cost: int | None = Field(default=None, gt=0)
    duration_hours: int | None = Field(default=None, gt=0)
    max_per_account_per_day: int | None = Field(default=None, gt=0)
    is_active: bool | None = None


class ClaimOutput(BaseModel):
    id: int
    coupon_id: int
    coupon_name: str
    coupon_type: CouponType
    claimed_at: datetime
    expires_at: datetime
    points_spent: int
    is_used: bool
    used_at: datetime | None = None
    order_id: int | None = None
    state: ClaimState


class DiscountPreviewRequest(BaseModel):
    cart_total_cents: int = Field(ge=0)


class DiscountPreviewOutput(BaseModel):
    claim_id: int
    cart_total_cents: int
    discount_cents: int
    total_after_discount_cents: int


# =============================================================================
# Revision Schemas
# =============================================================================


class RevisionOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entity_type: str
    entity_key: str
    revision: int
