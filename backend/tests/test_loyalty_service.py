"""
Tests for LoyaltyService: points projection, claims, discounts, redemption.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront_api.services.domain import LoyaltyService, claim_state, decode_coupon_value
from storefront_api.services.domain.loyalty_service import MinOrderDiscountValue
from shared.utils.exceptions import (
    CouponExpiredOrUsedError,
    CouponNotFoundError,
    CustomerNotFoundError,
    DailyLimitExceededError,
    InsufficientPointsError,
    ValidationError,
)
from tests.conftest import delivered_order, make_coupon, make_customer, menu_item


NOON = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock so expiry and day boundaries can be tested."""

    def __init__(self, now: datetime = NOON):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def loyalty(db_session, clock):
    return LoyaltyService(db_session, clock=clock)


def min_order(min_order_amount, discount, discount_type="fixed") -> str:
    return json.dumps({"minOrder": min_order_amount, "discount": discount, "discountType": discount_type})


class TestPointsBalance:
    def test_unknown_customer_has_zero(self, loyalty):
        assert loyalty.points_balance("nobody") == 0

    def test_one_point_per_ten_pounds_delivered(self, db_session, loyalty):
        delivered_order(db_session, "cust-1", 2_599)
        delivered_order(db_session, "cust-1", 2_500)

        assert loyalty.points_balance("cust-1") == 5

    def test_only_delivered_orders_count(self, db_session, loyalty):
        order = delivered_order(db_session, "cust-1", 10_000)
        order.status = "ready"
        db_session.commit()

        assert loyalty.points_balance("cust-1") == 0

    def test_summary_breaks_down_balance(self, db_session, loyalty):
        delivered_order(db_session, "cust-1", 25_000)
        coupon = make_coupon(db_session, points_cost=20)
        loyalty.claim_coupon("cust-1", coupon.id)

        assert loyalty.loyalty_summary("cust-1") == {
            "delivered_spend_cents": 25_000,
            "earned_points": 25,
            "committed_points": 20,
            "balance": 5,
        }


class TestClaimCoupon:
    def test_claim_spends_points_then_rejects_when_short(self, db_session, loyalty):
        """25 points, a 20 point coupon: one claim succeeds, the next is refused."""
        delivered_order(db_session, "cust-1", 25_000)
        coupon = make_coupon(db_session, points_cost=20, max_per_account_per_day=5)

        claim = loyalty.claim_coupon("cust-1", coupon.id)

        assert claim.points_spent == 20
        assert claim.is_used is False
        assert loyalty.points_balance("cust-1") == 5
        with pytest.raises(InsufficientPointsError) as exc_info:
            loyalty.claim_coupon("cust-1", coupon.id)
        assert exc_info.value.status_code == 409

    def test_claim_expires_after_duration(self, db_session, loyalty, clock):
        delivered_order(db_session, "cust-1", 25_000)
        coupon = make_coupon(db_session, points_cost=20, duration_hours=48)

        claim = loyalty.claim_coupon("cust-1", coupon.id)

        assert claim.expires_at.replace(tzinfo=timezone.utc) == NOON + timedelta(hours=48)

    def test_daily_cap_resets_at_local_midnight(self, db_session, loyalty, clock):
        delivered_order(db_session, "cust-1", 100_000)
        coupon = make_coupon(db_session, points_cost=10, max_per_account_per_day=1)
        loyalty.claim_coupon("cust-1", coupon.id)

        with pytest.raises(DailyLimitExceededError):
            loyalty.claim_coupon("cust-1", coupon.id)

        clock.advance(hours=13)
        second = loyalty.claim_coupon("cust-1", coupon.id)
        assert second.id is not None

    def test_daily_cap_counts_used_claims_too(self, db_session, loyalty):
        delivered_order(db_session, "cust-1", 100_000)
        order = delivered_order(db_session, "cust-1", 1_000)
        coupon = make_coupon(db_session, points_cost=10, max_per_account_per_day=2)
        first = loyalty.claim_coupon("cust-1", coupon.id)
        loyalty.redeem(first.id, order.id)
        loyalty.claim_coupon("cust-1", coupon.id)

        with pytest.raises(DailyLimitExceededError):
            loyalty.claim_coupon("cust-1", coupon.id)

    def test_daily_cap_is_per_coupon(self, db_session, loyalty):
        delivered_order(db_session, "cust-1", 100_000)
        first = make_coupon(db_session, name="First", points_cost=10)
        second = make_coupon(db_session, name="Second", points_cost=10)

        loyalty.claim_coupon("cust-1", first.id)
        loyalty.claim_coupon("cust-1", second.id)

        assert len(loyalty.list_claims("cust-1")) == 2

    def test_unknown_customer_rejected(self, db_session, loyalty):
        coupon = make_coupon(db_session)

        with pytest.raises(CustomerNotFoundError):
            loyalty.claim_coupon("ghost", coupon.id)

    def test_inactive_coupon_rejected(self, db_session, loyalty):
        delivered_order(db_session, "cust-1", 100_000)
        coupon = make_coupon(db_session, is_active=False)

        with pytest.raises(CouponNotFoundError):
            loyalty.claim_coupon("cust-1", coupon.id)

    def test_expired_unused_claim_refunds_points(self, db_session, loyalty, clock):
        delivered_order(db_session, "cust-1", 25_000)
        coupon = make_coupon(db_session, points_cost=20, duration_hours=24)
        claim = loyalty.claim_coupon("cust-1", coupon.id)
        assert loyalty.points_balance("cust-1") == 5

        clock.advance(hours=25)

        assert claim_state(claim, clock()) == "expired"
        assert loyalty.points_balance("cust-1") == 25

    def test_used_claim_keeps_points_spent_after_expiry(self, db_session, loyalty, clock):
        delivered_order(db_session, "cust-1", 25_000)
        order = delivered_order(db_session, "cust-1", 500)
        coupon = make_coupon(db_session, points_cost=20)
        claim = loyalty.claim_coupon("cust-1", coupon.id)
        loyalty.redeem(claim.id, order.id)

        clock.advance(days=3)

        assert loyalty.points_balance("cust-1") == 5


class TestClaimLifecycle:
    @pytest.fixture
    def claim(self, db_session, loyalty):
        delivered_order(db_session, "cust-1", 50_000)
        coupon = make_coupon(db_session, points_cost=20)
        return loyalty.claim_coupon("cust-1", coupon.id)

    def test_redeem_succeeds_once(self, db_session, loyalty, claim):
        order = delivered_order(db_session, "cust-1", 1_000)

        redeemed = loyalty.redeem(claim.id, order.id)

        assert redeemed.is_used is True
        assert redeemed.order_id == order.id
        assert redeemed.used_at is not None
        with pytest.raises(CouponExpiredOrUsedError):
            loyalty.redeem(claim.id, order.id)

    def test_redeem_expired_claim_rejected(self, db_session, loyalty, clock, claim):
        order = delivered_order(db_session, "cust-1", 1_000)
        clock.advance(hours=24)

        with pytest.raises(CouponExpiredOrUsedError):
            loyalty.redeem(claim.id, order.id)

    def test_redeem_unknown_order_rejected(self, loyalty, claim):
        with pytest.raises(ValidationError):
            loyalty.redeem(claim.id, 987_654)

    def test_redeem_links_order_to_claim(self, db_session, loyalty, claim):
        order = delivered_order(db_session, "cust-1", 1_000)

        loyalty.redeem(claim.id, order.id)

        db_session.refresh(order)
        assert order.coupon_claim_id == claim.id

    def test_redeem_against_other_customers_order_rejected(self, db_session, loyalty, claim):
        foreign = delivered_order(db_session, "cust-2", 1_000)

        with pytest.raises(CouponExpiredOrUsedError):
            loyalty.redeem(claim.id, foreign.id)

        db_session.refresh(claim)
        db_session.refresh(foreign)
        assert claim.is_used is False
        assert foreign.coupon_claim_id is None

    def test_redeem_against_order_with_another_claim_rejected(self, db_session, loyalty, claim):
        other = loyalty.claim_coupon("cust-1", make_coupon(db_session, name="Other", points_cost=10).id)
        order = delivered_order(db_session, "cust-1", 1_000)
        loyalty.redeem(other.id, order.id)

        with pytest.raises(ValidationError):
            loyalty.redeem(claim.id, order.id)

        db_session.refresh(claim)
        assert claim.is_used is False

    def test_verify_live_rejects_other_customer(self, db_session, loyalty, claim):
        make_customer(db_session, "cust-2")

        with pytest.raises(CouponExpiredOrUsedError):
            loyalty.verify_live(claim.id, "cust-2")

    def test_list_claims_live_only(self, db_session, loyalty, clock, claim):
        assert [c.id for c in loyalty.list_claims("cust-1", include_inactive=False)] == [claim.id]

        clock.advance(days=2)

        assert loyalty.list_claims("cust-1", include_inactive=False) == []
        assert [c.id for c in loyalty.list_claims("cust-1")] == [claim.id]


class TestDiscounts:
    def _claim(self, db_session, loyalty, coupon_type, value):
        delivered_order(db_session, "cust-1", 100_000)
        coupon = make_coupon(db_session, coupon_type=coupon_type, value=value, points_cost=10)
        return loyalty.claim_coupon("cust-1", coupon.id)

    def test_percent_off(self, db_session, loyalty):
        claim = self._claim(db_session, loyalty, "percent_off", "15")

        assert loyalty.discount_for(claim, 2_000) == 300

    def test_percent_off_rounds_half_up(self, db_session, loyalty):
        claim = self._claim(db_session, loyalty, "percent_off", "10")

        assert loyalty.discount_for(claim, 1_005) == 101

    def test_min_order_fixed_below_threshold_gives_nothing(self, db_session, loyalty):
        claim = self._claim(db_session, loyalty, "min_order_discount", min_order(20, 5))

        assert loyalty.discount_for(claim, 1_999) == 0
        assert loyalty.discount_for(claim, 2_000) == 500

    def test_min_order_percent(self, db_session, loyalty):
        claim = self._claim(db_session, loyalty, "min_order_discount", min_order(20, 10, "percent"))

        assert loyalty.discount_for(claim, 3_000) == 300

    def test_discount_never_exceeds_total(self, db_session, loyalty):
        claim = self._claim(db_session, loyalty, "min_order_discount", min_order(1, 5))

        assert loyalty.discount_for(claim, 300) == 300

    def test_free_item_takes_cheapest_listed_price(self, seeded):
        loyalty = LoyaltyService(seeded, clock=FakeClock())
        ids = [menu_item(seeded, "Steak Only").id, menu_item(seeded, "Signature Fries").id]
        claim = self._claim(seeded, loyalty, "free_item", json.dumps(ids))

        assert loyalty.discount_for(claim, 5_000) == 400

    def test_bogo_uses_same_rule(self, seeded):
        loyalty = LoyaltyService(seeded, clock=FakeClock())
        claim = self._claim(seeded, loyalty, "bogo", json.dumps([menu_item(seeded, "Steak Only").id]))

        assert loyalty.discount_for(claim, 5_000) == 1_000


class TestDecodeCouponValue:
    def test_percent(self):
        assert decode_coupon_value("percent_off", "12.5") == Decimal("12.5")

    @pytest.mark.parametrize("value", ["0", "101", "-5", "lots"])
    def test_bad_percent_rejected(self, value):
        with pytest.raises(ValidationError):
            decode_coupon_value("percent_off", value)

    def test_min_order_payload(self):
        decoded = decode_coupon_value("min_order_discount", min_order(25, 5))

        assert isinstance(decoded, MinOrderDiscountValue)
        assert decoded.min_order == Decimal("25")
        assert decoded.discount_type == "fixed"

    @pytest.mark.parametrize(
        "value",
        [
            "not json",
            json.dumps({"minOrder": 20}),
            min_order(20, 5, "voucher"),
            min_order(20, 150, "percent"),
        ],
    )
    def test_bad_min_order_rejected(self, value):
        with pytest.raises(ValidationError):
            decode_coupon_value("min_order_discount", value)

    @pytest.mark.parametrize("value", ["[]", "[true]", '["3"]', "{}", "3"])
    def test_bad_item_list_rejected(self, value):
        with pytest.raises(ValidationError):
            decode_coupon_value("free_item", value)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            decode_coupon_value("cashback", "5")


class TestCouponCatalog:
    def test_create_validates_payload(self, db_session, loyalty):
        with pytest.raises(ValidationError):
            loyalty.create_coupon("Broken", "percent_off", "250", points_cost=10)

    def test_create_rejects_zero_cost(self, db_session, loyalty):
        with pytest.raises(ValidationError):
            loyalty.create_coupon("Free", "percent_off", "10", points_cost=0)

    def test_update_changes_fields(self, db_session, loyalty):
        coupon = loyalty.create_coupon("Ten Off", "percent_off", "10", points_cost=30)

        updated = loyalty.update_coupon(coupon.id, points_cost=40, is_active=False)

        assert updated.points_cost == 40
        assert updated.is_active is False
        assert loyalty.list_coupons() == []

    def test_update_rejects_unknown_field(self, db_session, loyalty):
        coupon = loyalty.create_coupon("Ten Off", "percent_off", "10", points_cost=30)

        with pytest.raises(ValidationError):
            loyalty.update_coupon(coupon.id, colour="red")

    def test_changing_cost_keeps_existing_claims(self, db_session, loyalty):
        delivered_order(db_session, "cust-1", 50_000)
        coupon = loyalty.create_coupon("Ten Off", "percent_off", "10", points_cost=20)
        claim = loyalty.claim_coupon("cust-1", coupon.id)

        loyalty.update_coupon(coupon.id, points_cost=45)

        db_session.refresh(claim)
        assert claim.points_spent == 20
        assert loyalty.points_balance("cust-1") == 30
