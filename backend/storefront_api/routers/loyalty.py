"""
Loyalty router.
Points balance, coupon catalog, claiming and discount previews for
customers, and coupon catalog upkeep for staff.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import current_user, require_admin
from shared.security.rate_limit import limiter
from shared.utils.exceptions import ClaimNotFoundError
from shared.utils.schemas import (
    ClaimOutput,
    CouponOutput,
    CreateCouponRequest,
    CurrentUser,
    DiscountPreviewOutput,
    DiscountPreviewRequest,
    PointsBalanceOutput,
    UpdateCouponRequest,
)
from storefront_api.models import CustomerCoupon, utcnow
from storefront_api.services.domain import LoyaltyService, claim_state


router = APIRouter(tags=["loyalty"])


def _claim_output(claim: CustomerCoupon) -> ClaimOutput:
    return ClaimOutput(
        id=claim.id,
        coupon_id=claim.coupon_id,
        coupon_name=claim.coupon.name,
        coupon_type=claim.coupon.type,
        claimed_at=claim.claimed_at,
        expires_at=claim.expires_at,
        points_spent=claim.points_spent,
        is_used=claim.is_used,
        used_at=claim.used_at,
        order_id=claim.order_id,
        state=claim_state(claim, utcnow()),
    )


# =============================================================================
# Customer
# =============================================================================


@router.get("/api/loyalty/balance", response_model=PointsBalanceOutput)
def get_balance(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> PointsBalanceOutput:
    summary = LoyaltyService(db).loyalty_summary(user.id)
    return PointsBalanceOutput(customer_id=user.id, **summary)


@router.get("/api/loyalty/coupons", response_model=list[CouponOutput])
def list_coupons(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> list[CouponOutput]:
    return [CouponOutput.model_validate(c) for c in LoyaltyService(db).list_coupons()]


@router.post(
    "/api/loyalty/coupons/{coupon_id}/claim",
    response_model=ClaimOutput,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.claim_rate_limit)
def claim_coupon(
    request: Request,
    coupon_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> ClaimOutput:
    """
    Spend points on a coupon.

    409 when the balance is too low or today's claims hit the coupon's cap.
    """
    claim = LoyaltyService(db).claim_coupon(user.id, coupon_id)
    return _claim_output(claim)


@router.get("/api/loyalty/claims", response_model=list[ClaimOutput])
def list_claims(
    include_inactive: bool = Query(default=True),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> list[ClaimOutput]:
    """The caller's claims, newest first, each flagged live, used or expired."""
    claims = LoyaltyService(db).list_claims(user.id, include_inactive=include_inactive)
    return [_claim_output(claim) for claim in claims]


@router.post("/api/loyalty/claims/{claim_id}/discount", response_model=DiscountPreviewOutput)
def preview_discount(
    claim_id: int,
    body: DiscountPreviewRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(current_user),
) -> DiscountPreviewOutput:
    """What a live claim would take off a cart total. Nothing is redeemed."""
    service = LoyaltyService(db)
    claim = service.get_claim(claim_id)
    if claim.customer_id != user.id:
        raise ClaimNotFoundError(claim_id, customer_id=user.id)
    claim = service.verify_live(claim_id, user.id)
    discount = service.discount_for(claim, body.cart_total_cents)
    return DiscountPreviewOutput(
        claim_id=claim_id,
        cart_total_cents=body.cart_total_cents,
        discount_cents=discount,
        total_after_discount_cents=body.cart_total_cents - discount,
    )


# =============================================================================
# Admin
# =============================================================================


@router.get("/api/admin/coupons", response_model=list[CouponOutput])
def list_all_coupons(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> list[CouponOutput]:
    coupons = LoyaltyService(db).list_coupons(active_only=False)
    return [CouponOutput.model_validate(c) for c in coupons]


@router.post("/api/admin/coupons", response_model=CouponOutput, status_code=status.HTTP_201_CREATED)
def create_coupon(
    body: CreateCouponRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> CouponOutput:
    coupon = LoyaltyService(db).create_coupon(
        name=body.name,
        coupon_type=body.type,
        value=body.value,
        points_cost=body.points_cost,
        duration_hours=body.duration_hours,
        max_per_account_per_day=body.max_per_account_per_day,
        description=body.description,
        is_active=body.is_active,
    )
    return CouponOutput.model_validate(coupon)


@router.patch("/api/admin/coupons/{coupon_id}", response_model=CouponOutput)
def update_coupon(
    coupon_id: int,
    body: UpdateCouponRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> CouponOutput:
    coupon = LoyaltyService(db).update_coupon(coupon_id, **body.model_dump(exclude_unset=True))
    return CouponOutput.model_validate(coupon)


@router.get("/api/admin/customers/{customer_id}/loyalty", response_model=PointsBalanceOutput)
def get_customer_loyalty(
    customer_id: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> PointsBalanceOutput:
    summary = LoyaltyService(db).loyalty_summary(customer_id)
    return PointsBalanceOutput(customer_id=customer_id, **summary)
