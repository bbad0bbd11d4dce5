"""
API route tests.

Verifies:
- Operator identity is required on register endpoints (401)
- Service errors map to 400 / 404 / 409 JSON bodies
- Cart -> checkout -> ledger flow over HTTP
- The ledger SSE stream subscribes on connect and unsubscribes on close
"""

from decimal import Decimal

import pytest

from matepos.services.change_feed import get_feed
from matepos.services.export_service import XLSX_MIMETYPE


def add_to_cart(client, headers, product_id, quantity=1):
    return client.post("/api/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=headers)


def checkout(client, headers, *splits):
    return client.post(
        "/api/sales",
        json={"payment_splits": [{"method": m, "amount": a} for m, a in splits]},
        headers=headers,
    )


# =============================================================================
# IDENTITY (401)
# =============================================================================


class TestOperatorRequired:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/cart"),
            ("POST", "/api/cart/items"),
            ("DELETE", "/api/cart"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales/1/cancel"),
            ("GET", "/api/cash-register"),
            ("POST", "/api/cash-register/withdrawals"),
            ("POST", "/api/cash-register/incomes"),
            ("GET", "/api/cash-register/stream"),
            ("POST", "/api/payment-methods"),
            ("PUT", "/api/settings/discounts"),
        ],
    )
    def test_requires_operator(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_blank_header_rejected(self, client, db_session):
        resp = client.get("/api/cart", headers={"X-User-Id": "   "})
        assert resp.status_code == 401

    def test_catalog_reads_are_public(self, client, db_session, products):
        resp = client.get("/api/products")
        assert resp.status_code == 200
        assert [p["name"] for p in resp.get_json()["products"]] == ["Mate Imperial", "Yerba Playadito 1kg"]


# =============================================================================
# PRODUCTS / CART
# =============================================================================


class TestCartRoutes:
    def test_tier_price_applied_at_quantity(self, client, db_session, headers, products, discount_settings):
        yerba = products[0]
        resp = add_to_cart(client, headers, yerba.id, 6)

        assert resp.status_code == 201
        cart = resp.get_json()["cart"]
        assert cart["items"][0]["unit_price"] == "90.00"
        assert cart["items"][0]["original_unit_price"] == "100.00"
        assert cart["total"] == "540.00"
        assert cart["savings"] == "60.00"

    def test_line_repriced_when_quantity_grows(self, client, db_session, headers, products, discount_settings):
        yerba = products[0]
        add_to_cart(client, headers, yerba.id, 5)
        assert client.get("/api/cart", headers=headers).get_json()["cart"]["items"][0]["unit_price"] == "100.00"

        resp = client.patch(f"/api/cart/items/{yerba.id}", json={"quantity": 12}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["cart"]["items"][0]["unit_price"] == "85.00"

    def test_stock_exceeded(self, client, db_session, headers, products):
        mate = products[1]
        resp = add_to_cart(client, headers, mate.id, 4)
        assert resp.status_code == 400
        assert "in stock" in resp.get_json()["error"]

    def test_unknown_product(self, client, db_session, headers, products):
        resp = add_to_cart(client, headers, 999)
        assert resp.status_code == 404

    def test_invalid_quantity(self, client, db_session, headers, products):
        resp = add_to_cart(client, headers, products[0].id, "2.5")
        assert resp.status_code == 400

    def test_update_line_not_in_cart(self, client, db_session, headers, products):
        resp = client.patch(f"/api/cart/items/{products[0].id}", json={"quantity": 2}, headers=headers)
        assert resp.status_code == 400

    def test_remove_and_clear(self, client, db_session, headers, products):
        add_to_cart(client, headers, products[0].id)
        add_to_cart(client, headers, products[1].id)

        resp = client.delete(f"/api/cart/items/{products[0].id}", headers=headers)
        assert resp.get_json()["cart"]["count"] == 1

        resp = client.delete("/api/cart", headers=headers)
        assert resp.get_json()["cart"]["items"] == []


# =============================================================================
# SALES
# =============================================================================


class TestSalesRoutes:
    def test_checkout_with_split_payment(self, client, db_session, headers, products, payment_methods):
        add_to_cart(client, headers, products[0].id, 2)
        add_to_cart(client, headers, products[1].id)

        resp = checkout(client, headers, ("cash", "300"), ("card", "150"))

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["payment_method"] == "cash,card"
        assert sale["total_amount"] == "450.00"
        assert sale["user_id"] == "operator-1"
        assert sale["payment_summaries"] == [
            {"method": "cash", "name": "Efectivo", "amount": "300.00"},
            {"method": "card", "name": "Tarjeta", "amount": "150.00"},
        ]
        assert [item["product_name"] for item in sale["items"]] == ["Yerba Playadito 1kg", "Mate Imperial"]
        assert client.get("/api/cart", headers=headers).get_json()["cart"]["items"] == []

    def test_incomplete_payment_keeps_cart(self, client, db_session, headers, products, payment_methods):
        add_to_cart(client, headers, products[0].id)

        resp = checkout(client, headers, ("cash", "60"))
        assert resp.status_code == 400
        assert client.get("/api/cart", headers=headers).get_json()["cart"]["count"] == 1

    def test_payment_splits_must_be_a_list(self, client, db_session, headers, products, payment_methods):
        add_to_cart(client, headers, products[0].id)
        resp = client.post("/api/sales", json={"payment_splits": "cash"}, headers=headers)
        assert resp.status_code == 400

    def test_preview_splits(self, client, db_session, headers, products, payment_methods):
        add_to_cart(client, headers, products[0].id, 3)

        resp = client.post(
            "/api/sales/splits/preview",
            json={"payment_splits": [{"method": "cash", "amount": "100"}]},
            headers=headers,
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["total"] == "300.00"
        assert body["remaining"] == "200.00"
        assert body["can_submit"] is False
        assert body["can_add_split"] is True

    def test_cancel_then_cancel_again(self, client, db_session, headers, products, payment_methods):
        add_to_cart(client, headers, products[0].id)
        sale_id = checkout(client, headers, ("cash", "100")).get_json()["sale"]["id"]

        resp = client.post(f"/api/sales/{sale_id}/cancel", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["sale"]["status"] == "cancelled"

        resp = client.post(f"/api/sales/{sale_id}/cancel", headers=headers)
        assert resp.status_code == 409

    def test_cancel_unknown_sale(self, client, db_session, headers):
        resp = client.post("/api/sales/999/cancel", headers=headers)
        assert resp.status_code == 404

    def test_history_pagination(self, client, db_session, headers, products, payment_methods):
        for _ in range(3):
            add_to_cart(client, headers, products[0].id)
            checkout(client, headers, ("cash", "100"))

        resp = client.get("/api/sales?limit=2&offset=1", headers=headers)
        body = resp.get_json()
        assert body["total"] == 3
        assert body["offset"] == 1
        assert len(body["sales"]) == 2

    def test_history_rejects_bad_limit(self, client, db_session, headers):
        resp = client.get("/api/sales?limit=abc", headers=headers)
        assert resp.status_code == 400

    def test_recent_sales(self, client, db_session, headers, products, payment_methods):
        add_to_cart(client, headers, products[0].id)
        checkout(client, headers, ("card", "100"))

        body = client.get("/api/sales/recent", headers=headers).get_json()
        assert body["error"] is None
        assert body["sales"][0]["payment_summaries"][0]["name"] == "Tarjeta"

    def test_export_sales(self, client, db_session, headers, products, payment_methods):
        add_to_cart(client, headers, products[0].id)
        checkout(client, headers, ("cash", "100"))

        resp = client.get("/api/sales/export", headers=headers)
        assert resp.status_code == 200
        assert resp.mimetype == XLSX_MIMETYPE
        assert "sales_history.xlsx" in resp.headers["Content-Disposition"]


# =============================================================================
# CASH REGISTER
# =============================================================================


class TestCashRegisterRoutes:
    def _sell(self, client, headers, products, *splits):
        add_to_cart(client, headers, products[0].id, 3)
        return checkout(client, headers, *splits)

    def test_ledger_after_split_sale(self, client, db_session, headers, products, payment_methods):
        self._sell(client, headers, products, ("cash", "200"), ("card", "100"))

        body = client.get("/api/cash-register", headers=headers).get_json()
        assert body["error"] is None
        assert [(r["code"], r["available"]) for r in body["rows"]] == [("cash", "200.00"), ("card", "100.00")]
        assert body["net_available"] == "300.00"

    def test_withdrawal_and_income(self, client, db_session, headers, products, payment_methods):
        self._sell(client, headers, products, ("cash", "300"))

        resp = client.post(
            "/api/cash-register/withdrawals",
            json={"payment_method": "cash", "amount": "120", "description": "Bank deposit"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["withdrawal"]["created_by"] == "operator-1"

        resp = client.post(
            "/api/cash-register/incomes",
            json={"payment_method": "cash", "amount": 20, "description": "Change float"},
            headers=headers,
        )
        assert resp.status_code == 201

        row = client.get("/api/cash-register", headers=headers).get_json()["rows"][0]
        assert row["available"] == "200.00"

        history = client.get("/api/cash-register/withdrawals?payment_method=cash", headers=headers).get_json()
        assert [w["amount"] for w in history["withdrawals"]] == ["120.00"]

    def test_withdrawal_above_available(self, client, db_session, headers, products, payment_methods):
        self._sell(client, headers, products, ("cash", "300"))

        resp = client.post(
            "/api/cash-register/withdrawals",
            json={"payment_method": "cash", "amount": "500", "description": "Too much"},
            headers=headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["details"] == {
            "payment_method": "cash",
            "requested": "500.00",
            "available": "300.00",
        }

    def test_movement_for_unknown_method(self, client, db_session, headers, payment_methods):
        resp = client.post(
            "/api/cash-register/incomes",
            json={"payment_method": "bitcoin", "amount": "5", "description": "x"},
            headers=headers,
        )
        assert resp.status_code == 404

    def test_cancelled_sale_drops_out_of_ledger(self, client, db_session, headers, products, payment_methods):
        sale_id = self._sell(client, headers, products, ("cash", "300")).get_json()["sale"]["id"]
        client.post(f"/api/sales/{sale_id}/cancel", headers=headers)

        body = client.get("/api/cash-register", headers=headers).get_json()
        assert body["rows"] == []
        assert body["net_available"] == "0.00"

    def test_export_ledger(self, client, db_session, headers, products, payment_methods):
        self._sell(client, headers, products, ("cash", "300"))

        resp = client.get("/api/cash-register/export", headers=headers)
        assert resp.status_code == 200
        assert resp.mimetype == XLSX_MIMETYPE
        assert "cash_register_" in resp.headers["Content-Disposition"]

    def test_stream_sends_snapshot_and_unsubscribes(self, client, db_session, headers, payment_methods):
        feed = get_feed()
        before = feed.subscriber_count

        resp = client.get("/api/cash-register/stream", headers=headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"

        chunks = iter(resp.response)
        first = next(chunks)
        assert first.startswith(b"event: ledger\ndata: ")
        assert feed.subscriber_count == before + 1

        assert next(chunks) == b": keep-alive\n\n"

        resp.close()
        assert feed.subscriber_count == before


# =============================================================================
# PAYMENT METHODS / SETTINGS / HEALTH
# =============================================================================


class TestPaymentMethodRoutes:
    def test_list_active_only(self, client, db_session, payment_methods):
        body = client.get("/api/payment-methods?active_only=true").get_json()
        assert [m["code"] for m in body["payment_methods"]] == ["cash", "card"]

    def test_create(self, client, db_session, headers):
        resp = client.post("/api/payment-methods", json={"code": "qr", "name": "QR"}, headers=headers)
        assert resp.status_code == 201
        assert resp.get_json()["payment_method"]["active"] is True

    def test_duplicate_code(self, client, db_session, headers, payment_methods):
        resp = client.post("/api/payment-methods", json={"code": "cash", "name": "Cash again"}, headers=headers)
        assert resp.status_code == 409

    def test_invalid_code(self, client, db_session, headers):
        resp = client.post("/api/payment-methods", json={"code": "Gift Card", "name": "Gift"}, headers=headers)
        assert resp.status_code == 400

    def test_toggle(self, client, db_session, headers, payment_methods):
        method_id = payment_methods["transfer"].id
        resp = client.post(f"/api/payment-methods/{method_id}/toggle", json={"active": True}, headers=headers)

        assert resp.status_code == 200
        assert resp.get_json()["payment_method"]["active"] is True

    def test_toggle_requires_boolean(self, client, db_session, headers, payment_methods):
        method_id = payment_methods["cash"].id
        resp = client.post(f"/api/payment-methods/{method_id}/toggle", json={"active": "no"}, headers=headers)
        assert resp.status_code == 400


class TestSettingsRoutes:
    def test_update_discounts(self, client, db_session, headers):
        resp = client.put(
            "/api/settings/discounts",
            json={"tier1_quantity": 5, "tier1_discount": 8, "tier2_quantity": 10, "tier2_discount": 12},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["discount_settings"]["tier1_quantity"] == 5

    def test_tiers_out_of_order(self, client, db_session, headers, discount_settings):
        resp = client.put(
            "/api/settings/discounts",
            json={"tier1_quantity": 12, "tier1_discount": 10, "tier2_quantity": 6, "tier2_discount": 15},
            headers=headers,
        )
        assert resp.status_code == 400
        body = client.get("/api/settings/discounts").get_json()
        assert body["discount_settings"]["tier1_quantity"] == 6

    def test_wholesale_prices(self, client, db_session, products, discount_settings):
        rows = client.get("/api/wholesale-prices").get_json()["products"]
        yerba = next(r for r in rows if r["name"] == "Yerba Playadito 1kg")
        assert Decimal(yerba["tier2_price"]) == Decimal("85.00")


class TestHealth:
    def test_degraded_until_initialized(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"

    def test_healthy(self, client, db_session, payment_methods, discount_settings):
        body = client.get("/health").get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["active_payment_methods"] == 2

    def test_reports_cart_listeners(self, client, cart):
        unsubscribe = cart.subscribe(lambda snapshot: None)
        try:
            body = client.get("/health").get_json()
            assert body["checks"]["cart"]["listeners"] == 1
        finally:
            unsubscribe()

        assert client.get("/health").get_json()["checks"]["cart"]["listeners"] == 0
