"""
Orders router.
Customer checkout and order history, plus staff status changes and
cancellation.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.constants import OrderStatus
from shared.infrastructure.db import get_db
from shared.security.auth import current_user, require_admin
from shared.utils.exceptions import OrderNotFoundError
from shared.utils.schemas import (
    CurrentUser,
    OrderOutput,
    PlaceOrderRequest,
    StaffOrderRequest,
    UpdateOrderStatusRequest,
)
from storefront_api.services.domain import OrderService


router = APIRouter(tags=["orders"])


# =============================================================================
# Customer
# =============================================================================


@router.post("/api/orders", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def place_order(
    body: PlaceOrderRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> OrderOutput:
    """
    Place an order for the current user.

    Stock is deducted and the coupon claim (if any) is redeemed in the same
    transaction. 409 when stock ran out or the claim is no longer live.
    """
    order = OrderService(db).place_order(
        customer_id=user.id,
        cart_lines=body.lines,
        applied_coupon_claim_id=body.coupon_claim_id,
        customer_name=user.name,
        customer_email=user.email,
        notes=body.notes,
        payment=body.payment,
    )
    return OrderOutput.model_validate(order)


@router.get("/api/orders", response_model=list[OrderOutput])
def list_my_orders(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> list[OrderOutput]:
    orders = OrderService(db).list_orders(customer_id=user.id)
    return [OrderOutput.model_validate(order) for order in orders]


@router.get("/api/orders/{order_id}", response_model=OrderOutput)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> OrderOutput:
    order = OrderService(db).get_order(order_id)
    if order.customer_id != user.id and not user.is_admin:
        # Same answer as a missing order, so other customers' IDs stay hidden
        raise OrderNotFoundError(order_id, customer_id=user.id)
    return OrderOutput.model_validate(order)


# =============================================================================
# Admin
# =============================================================================


@router.get("/api/admin/orders", response_model=list[OrderOutput])
def list_orders(
    status_filter: list[str] | None = Query(default=None, alias="status"),
    customer_id: str | None = Query(default=None),
    include_cancelled: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> list[OrderOutput]:
    """Order queue for staff. Defaults to open orders (pending to ready)."""
    statuses = status_filter or list(OrderStatus.ACTIVE)
    orders = OrderService(db).list_orders(
        customer_id=customer_id,
        statuses=statuses,
        include_cancelled=include_cancelled,
        limit=limit,
    )
    return [OrderOutput.model_validate(order) for order in orders]


@router.post("/api/admin/orders", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def place_staff_order(
    body: StaffOrderRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> OrderOutput:
    """Phone or counter order keyed in by staff on a customer's behalf."""
    order = OrderService(db).place_order(
        customer_id=body.customer_id,
        cart_lines=body.lines,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        notes=body.notes,
        payment=body.payment,
    )
    return OrderOutput.model_validate(order)


@router.patch("/api/admin/orders/{order_id}/status", response_model=OrderOutput)
def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> OrderOutput:
    order = OrderService(db).update_order_status(order_id, body.status, actor_id=user.id)
    return OrderOutput.model_validate(order)


@router.delete("/api/admin/orders/{order_id}", response_model=OrderOutput)
def cancel_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> OrderOutput:
    """Cancel and restore stock. Repeating the call changes nothing."""
    order = OrderService(db).cancel_order(order_id, actor_id=user.id)
    return OrderOutput.model_validate(order)
