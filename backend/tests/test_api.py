"""
End-to-end API tests through the FastAPI app.
"""

import pytest

from tests.conftest import delivered_order, headers_for, make_coupon, menu_item, set_stock, stock_of


def order_body(db, name: str, quantity: int = 1, success: bool = True, **extra) -> dict:
    return {
        "lines": [{"menu_item_id": menu_item(db, name).id, "quantity": quantity}],
        "payment": {"success": success, "payment_id": "pay_api"},
        **extra,
    }


class TestAuth:
    def test_missing_token_is_401(self, client, seeded):
        assert client.get("/api/orders").status_code == 401

    def test_garbage_token_is_401(self, client, seeded):
        response = client.get("/api/orders", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_customer_cannot_reach_admin_routes(self, client, seeded, customer_headers):
        assert client.get("/api/admin/stock", headers=customer_headers).status_code == 403

    def test_menu_is_public(self, client, seeded):
        response = client.get("/api/menu")

        assert response.status_code == 200
        names = {item["name"] for item in response.json()}
        assert "Steak Only" in names
        assert "£1 Steak Cone" not in names


class TestStockEndpoints:
    def test_adjust_and_read_back(self, client, seeded, admin_headers):
        response = client.post(
            "/api/admin/stock/Fries/adjust",
            json={"reserve_delta": 4, "active_delta": 2},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert (data["reserve_quantity"], data["active_quantity"], data["total_quantity"]) == (4, 2, 6)
        assert data["is_low"] is False

    def test_adjust_updates_public_menu(self, client, seeded, admin_headers):
        client.post("/api/admin/stock/Fries/adjust", json={"active_delta": 1}, headers=admin_headers)

        menu = {item["name"]: item for item in client.get("/api/menu").json()}

        assert menu["Signature Fries"]["is_available"] is True
        assert menu["Steak & Fries"]["is_available"] is False

    def test_stock_count_records_signatures(self, client, seeded, admin_headers):
        response = client.post(
            "/api/admin/stock/Lamb/count",
            json={"reserve_quantity": 12, "active_quantity": 3, "signed_reserve_by": "Jo", "signed_active_by": "Max"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["signed_active_by"] == "Max"

    def test_unknown_item_is_404(self, client, seeded, admin_headers):
        assert client.get("/api/admin/stock/Truffle", headers=admin_headers).status_code == 404

    def test_low_only_filter(self, client, seeded, admin_headers):
        set_stock(seeded, "Steaks", reserve=50, active=50)

        names = {
            item["name"]
            for item in client.get("/api/admin/stock?low_only=true", headers=admin_headers).json()
        }

        assert "Steaks" not in names
        assert "Fries" in names

    def test_revision_moves_with_adjustment(self, client, seeded, admin_headers):
        before = client.get("/api/revisions/stock_item/Fries").json()["revision"]

        client.post("/api/admin/stock/Fries/adjust", json={"reserve_delta": 1}, headers=admin_headers)

        assert client.get("/api/revisions/stock_item/Fries").json()["revision"] == before + 1


class TestMenuAdmin:
    def test_disable_hides_availability(self, client, seeded, admin_headers):
        set_stock(seeded, "Fries", reserve=5, active=5)
        fries_id = menu_item(seeded, "Signature Fries").id

        response = client.patch(
            f"/api/admin/menu/{fries_id}/enabled", json={"enabled": False}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["is_available"] is False
        assert response.json()["admin_enabled"] is False

    def test_replace_requirements(self, client, seeded, admin_headers):
        fries_id = menu_item(seeded, "Signature Fries").id

        response = client.put(
            f"/api/admin/menu/{fries_id}/requirements",
            json={"requirements": [{"stock_item_name": "Fries", "quantity_per_unit": 2}]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["requirements"] == [{"stock_item_name": "Fries", "quantity_per_unit": 2}]


class TestOrderFlow:
    @pytest.fixture
    def stocked(self, seeded):
        set_stock(seeded, "Steaks", reserve=2, active=3)
        set_stock(seeded, "Fries", reserve=5, active=5)
        return seeded

    def test_place_list_and_cancel(self, client, stocked, customer_headers, admin_headers):
        response = client.post("/api/orders", json=order_body(stocked, "Steak & Fries", 2), headers=customer_headers)

        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "pending"
        assert order["total_cents"] == 2400
        assert order["customer_name"] == "Ada Customer"
        assert [o["id"] for o in client.get("/api/orders", headers=customer_headers).json()] == [order["id"]]
        assert stock_of(stocked, "Steaks").total_quantity == 3

        cancelled = client.delete(f"/api/admin/orders/{order['id']}", headers=admin_headers)

        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert stock_of(stocked, "Steaks").total_quantity == 5
        assert client.get("/api/orders", headers=customer_headers).json() == []

    def test_other_customers_order_is_hidden(self, client, stocked, customer_headers):
        order_id = client.post(
            "/api/orders", json=order_body(stocked, "Steak Only"), headers=customer_headers
        ).json()["id"]

        response = client.get(f"/api/orders/{order_id}", headers=headers_for("cust-2"))

        assert response.status_code == 404

    def test_out_of_stock_is_409(self, client, stocked, customer_headers):
        response = client.post("/api/orders", json=order_body(stocked, "Steak Only", 6), headers=customer_headers)

        assert response.status_code == 409
        assert "Steaks" in response.json()["detail"]

    def test_failed_payment_is_402(self, client, stocked, customer_headers):
        response = client.post(
            "/api/orders", json=order_body(stocked, "Steak Only", success=False), headers=customer_headers
        )

        assert response.status_code == 402

    def test_payment_required_from_customers(self, client, stocked, customer_headers):
        body = order_body(stocked, "Steak Only")
        del body["payment"]

        assert client.post("/api/orders", json=body, headers=customer_headers).status_code == 422

    def test_staff_order_without_payment(self, client, stocked, admin_headers):
        body = order_body(stocked, "Steak Only", customer_id="walk-in-7", customer_name="Walk In")
        del body["payment"]

        response = client.post("/api/admin/orders", json=body, headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["customer_id"] == "walk-in-7"

    def test_status_flow_and_invalid_jump(self, client, stocked, customer_headers, admin_headers):
        order_id = client.post(
            "/api/orders", json=order_body(stocked, "Steak Only"), headers=customer_headers
        ).json()["id"]

        jump = client.patch(
            f"/api/admin/orders/{order_id}/status", json={"status": "delivered"}, headers=admin_headers
        )
        step = client.patch(
            f"/api/admin/orders/{order_id}/status", json={"status": "preparing"}, headers=admin_headers
        )

        assert jump.status_code == 400
        assert step.status_code == 200
        queue = client.get("/api/admin/orders", headers=admin_headers).json()
        assert [o["status"] for o in queue] == ["preparing"]

    def test_non_json_body_is_415(self, client, stocked, customer_headers):
        response = client.post(
            "/api/orders",
            content="lines=1",
            headers={**customer_headers, "Content-Type": "text/plain"},
        )

        assert response.status_code == 415


class TestLoyaltyFlow:
    def test_balance_claim_and_preview(self, client, seeded, customer_headers):
        delivered_order(seeded, "cust-1", 25_000)
        coupon = make_coupon(seeded, coupon_type="percent_off", value="10", points_cost=20)

        assert client.get("/api/loyalty/balance", headers=customer_headers).json()["balance"] == 25

        claimed = client.post(f"/api/loyalty/coupons/{coupon.id}/claim", headers=customer_headers)
        assert claimed.status_code == 201
        claim = claimed.json()
        assert claim["state"] == "live"
        assert client.get("/api/loyalty/balance", headers=customer_headers).json()["balance"] == 5

        preview = client.post(
            f"/api/loyalty/claims/{claim['id']}/discount",
            json={"cart_total_cents": 3000},
            headers=customer_headers,
        )
        assert preview.json()["discount_cents"] == 300
        assert preview.json()["total_after_discount_cents"] == 2700

    def test_insufficient_points_is_409(self, client, seeded, customer_headers):
        delivered_order(seeded, "cust-1", 5_000)
        coupon = make_coupon(seeded, points_cost=20)

        response = client.post(f"/api/loyalty/coupons/{coupon.id}/claim", headers=customer_headers)

        assert response.status_code == 409

    def test_preview_of_someone_elses_claim_is_404(self, client, seeded, customer_headers):
        delivered_order(seeded, "cust-1", 25_000)
        coupon = make_coupon(seeded, points_cost=20)
        claim_id = client.post(f"/api/loyalty/coupons/{coupon.id}/claim", headers=customer_headers).json()["id"]

        response = client.post(
            f"/api/loyalty/claims/{claim_id}/discount",
            json={"cart_total_cents": 1000},
            headers=headers_for("cust-2"),
        )

        assert response.status_code == 404

    def test_checkout_with_claim(self, client, seeded, customer_headers):
        set_stock(seeded, "Steaks", reserve=0, active=2)
        delivered_order(seeded, "cust-1", 25_000)
        coupon = make_coupon(seeded, coupon_type="percent_off", value="10", points_cost=20)
        claim_id = client.post(f"/api/loyalty/coupons/{coupon.id}/claim", headers=customer_headers).json()["id"]

        order = client.post(
            "/api/orders",
            json=order_body(seeded, "Steak Only", coupon_claim_id=claim_id),
            headers=customer_headers,
        ).json()

        assert order["discount_cents"] == 100
        assert order["total_cents"] == 900
        claims = client.get("/api/loyalty/claims", headers=customer_headers).json()
        assert claims[0]["state"] == "used"

    def test_claim_endpoint_is_rate_limited(self, client, seeded, customer_headers):
        coupon = make_coupon(seeded, points_cost=1_000)

        statuses = [
            client.post(f"/api/loyalty/coupons/{coupon.id}/claim", headers=customer_headers).status_code
            for _ in range(11)
        ]

        assert statuses[:10] == [404] * 10
        assert statuses[10] == 429


class TestCouponAdmin:
    def test_create_and_update(self, client, seeded, admin_headers):
        created = client.post(
            "/api/admin/coupons",
            json={
                "name": "Big Spender",
                "type": "min_order_discount",
                "value": '{"minOrder": 30, "discount": 5, "discountType": "fixed"}',
                "points_cost": 40,
            },
            headers=admin_headers,
        )
        assert created.status_code == 201

        updated = client.patch(
            f"/api/admin/coupons/{created.json()['id']}", json={"points_cost": 50}, headers=admin_headers
        )

        assert updated.status_code == 200
        assert updated.json()["points_cost"] == 50
        assert updated.json()["name"] == "Big Spender"

    def test_malformed_value_is_400(self, client, seeded, admin_headers):
        response = client.post(
            "/api/admin/coupons",
            json={"name": "Broken", "type": "percent_off", "value": "200", "points_cost": 10},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_customer_loyalty_lookup(self, client, seeded, admin_headers):
        delivered_order(seeded, "cust-9", 12_345)

        data = client.get("/api/admin/customers/cust-9/loyalty", headers=admin_headers).json()

        assert data["earned_points"] == 12
        assert data["delivered_spend_cents"] == 12_345
