"""
Checkout tests.

Verifies:
- The transaction is the only step that can fail a checkout
- Points, stock, pending cashback, spend totals and the POS order follow it
- A failing POS never undoes the sale
- A rejected checkout leaves the cart untouched
"""

import httpx
import pytest

from kiosk.extensions import db
from kiosk.models import StockMovement, Transaction
from kiosk.services import cart_service, checkout_service, customer_service, kiosk_session_service, pending_points_service, settings_service
from kiosk.services.checkout_service import CheckoutError
from kiosk.services.pos_client import PosApiClient, PosApiError
from kiosk.services.session_machine import SessionExpiredError
from kiosk.services.transaction_service import TransactionError


T0 = 1_900_000_000.0


@pytest.fixture
def member_cart(db_session, member, product):
    _, token = kiosk_session_service.start_session(now=T0)
    kiosk_session_service.identify_member(token, "M100", now=T0 + 1)
    cart_service.add_product(token, product_id=product.id, now=T0 + 2)
    return token


@pytest.fixture
def guest_cart(db_session, product):
    settings_service.set_setting("non_member_categories", [product.category_id])
    db.session.commit()
    _, token = kiosk_session_service.start_session(now=T0)
    kiosk_session_service.continue_as_no_member(token, now=T0 + 1)
    cart_service.add_product(token, product_id=product.id, now=T0 + 2)
    return token


class TestMemberCheckout:
    def test_cash_checkout(self, member_cart, member, pos):
        result = checkout_service.checkout(member_cart, payment_method="cash", now=T0 + 3)

        tx = result["transaction"]
        assert tx["transaction_code"] == "TRX-00001"
        assert tx["total_cents"] == 45000
        assert tx["points_earned"] == 45
        assert tx["customer_name"] == "Somchai Dee"
        assert result["reset_after_seconds"] == 60

        effects = result["side_effects"]
        assert effects["stock_recorded"] is True
        assert effects["pos_submitted"] is True
        assert effects["points_redeemed"] is False

        pending = pending_points_service.list_pending(customer_id=member.id)
        assert [p["points_amount"] for p in pending] == [45]
        assert pending[0]["id"] == effects["pending_points_id"]
        # cashback waits for approval
        assert customer_service.get_points_balance(member.id) == 0

        assert db.session.query(StockMovement).filter_by(status="sales").count() == 1
        assert customer_service.get_customer(member.id).total_spent_cents == 45000

        session = result["session"]
        assert session["state"] == "EXPIRED"
        assert session["expired_reason"] == "checkout"
        assert session["cart"] == []
        assert session["last_transaction_code"] == "TRX-00001"

    def test_pos_receives_order(self, member_cart, pos):
        checkout_service.checkout(member_cart, payment_method="card", now=T0 + 3)

        request = pos.requests[0]
        assert request["path"] == "/api/orders/submit"
        assert request["headers"]["x-kiosk-id"] == "KIOSK-TEST"
        assert request["headers"]["x-api-key"] == "pos-key"

        order = request["json"]["orderData"]
        assert order["transactionId"] == "TRX-00001"
        assert order["customer"]["customerId"] == "CK-0001"
        assert order["customer"]["isNoMember"] is False
        assert order["items"][0]["posItemId"] == "POS-LH1"
        assert order["items"][0]["price"] == 450.0
        assert order["pricing"]["total"] == 450.0
        assert order["payment"]["method"] == "card"
        assert order["points"]["earned"] == 45
        assert order["metadata"]["kioskLocation"] == "Test Store"

    def test_points_redemption(self, member_cart, member, pos):
        customer_service.add_points(member.id, 200)
        cart_service.set_points_percentage(member_cart, percentage=100, now=T0 + 3)

        result = checkout_service.checkout(member_cart, payment_method="cash", now=T0 + 4)
        tx = result["transaction"]
        assert tx["points_used"] == 200
        assert tx["points_used_value_cents"] == 20000
        assert tx["total_cents"] == 25000
        assert result["side_effects"]["points_redeemed"] is True
        assert customer_service.get_points_balance(member.id) == 0

    def test_failing_pos_keeps_the_sale(self, member_cart, pos):
        pos.routes[("POST", "/api/orders/submit")] = (503, {"success": False, "message": "Queue offline"})
        result = checkout_service.checkout(member_cart, payment_method="cash", now=T0 + 3)
        assert result["side_effects"]["pos_submitted"] is False
        assert result["session"]["state"] == "EXPIRED"
        assert db.session.query(Transaction).count() == 1

    def test_unreachable_pos_keeps_the_sale(self, member_cart, pos):
        pos.routes[("POST", "/api/orders/submit")] = httpx.ConnectError("refused")
        result = checkout_service.checkout(member_cart, payment_method="cash", now=T0 + 3)
        assert result["side_effects"]["pos_submitted"] is False
        assert result["transaction"]["status"] == "completed"


class TestRejectedCheckout:
    def test_empty_cart(self, db_session, member):
        _, token = kiosk_session_service.start_session(now=T0)
        kiosk_session_service.identify_member(token, "M100", now=T0 + 1)
        with pytest.raises(CheckoutError, match="Cart is empty"):
            checkout_service.checkout(token, payment_method="cash", now=T0 + 2)

    def test_payment_method_required(self, member_cart):
        with pytest.raises(CheckoutError, match="select a payment method"):
            checkout_service.checkout(member_cart, now=T0 + 3)

    def test_crypto_uses_its_own_flow(self, member_cart):
        with pytest.raises(CheckoutError, match="crypto payment flow"):
            checkout_service.checkout(member_cart, payment_method="crypto", now=T0 + 3)

    def test_transaction_failure_keeps_cart(self, member_cart, pos, monkeypatch):
        def fail(**kwargs):
            raise TransactionError("Transaction requires at least one item")

        monkeypatch.setattr(checkout_service, "create_transaction", fail)
        with pytest.raises(CheckoutError, match="Failed to save the order"):
            checkout_service.checkout(member_cart, payment_method="cash", now=T0 + 3)

        view = kiosk_session_service.get_session(member_cart, now=T0 + 4)
        assert view["state"] == "ACTIVE"
        assert len(view["cart"]) == 1
        assert pos.requests == []

    def test_expired_session(self, member_cart):
        kiosk_session_service.exit_session(member_cart, now=T0 + 3)
        with pytest.raises(SessionExpiredError):
            checkout_service.checkout(member_cart, payment_method="cash", now=T0 + 4)


class TestNoMemberCheckout:
    def test_default_methods(self, guest_cart):
        session, _ = kiosk_session_service.load_session(guest_cart, now=T0 + 3)
        assert checkout_service.available_payment_methods(session) == {"cash": True, "card": False, "crypto": False}

    def test_unavailable_method(self, guest_cart):
        with pytest.raises(CheckoutError, match="Payment method not available"):
            checkout_service.checkout(guest_cart, payment_method="card", now=T0 + 3)
        view = kiosk_session_service.get_session(guest_cart, now=T0 + 4)
        assert len(view["cart"]) == 1

    def test_cash_sale_earns_nothing(self, guest_cart, pos):
        result = checkout_service.checkout(guest_cart, payment_method="cash", now=T0 + 3)
        tx = result["transaction"]
        assert tx["customer_name"] == "No Member"
        assert tx["total_cents"] == 50000
        assert tx["points_earned"] == 0
        assert result["side_effects"]["pending_points_id"] is None
        assert pos.requests[0]["json"]["orderData"]["customer"]["isNoMember"] is True


class TestCheckoutRoute:
    def test_checkout_route(self, client, member, product, pos):
        token = client.post("/api/kiosk/sessions", json={}).json["token"]
        client.post(f"/api/kiosk/sessions/{token}/identify", json={"member_code": "M100"})
        client.post(f"/api/kiosk/sessions/{token}/cart/items", json={"product_id": product.id})

        methods = client.get(f"/api/kiosk/sessions/{token}/payment-methods")
        assert methods.json["payment_methods"]["crypto"] is True

        resp = client.post(f"/api/kiosk/sessions/{token}/checkout", json={"payment_method": "cash"})
        assert resp.status_code == 200
        assert resp.json["transaction"]["transaction_code"] == "TRX-00001"

        again = client.post(f"/api/kiosk/sessions/{token}/checkout", json={"payment_method": "cash"})
        assert again.status_code == 410


class TestPosStockChecks:
    def test_check_many_in_parallel(self, app, pos):
        pos.routes[("GET", "/api/stock/check")] = {"success": True, "data": {"stock": 5}}
        client = PosApiClient.from_config(app.config)
        results = client.check_stock_many(["POS-1", "POS-2", "POS-1", ""])
        assert set(results) == {"POS-1", "POS-2"}
        assert all(r["ok"] for r in results.values())
        assert sorted(r["params"]["itemId"] for r in pos.requests) == ["POS-1", "POS-2"]

    def test_failures_are_reported_per_item(self, app, pos):
        pos.routes[("GET", "/api/stock/check")] = (500, {"success": False})
        results = PosApiClient.from_config(app.config).check_stock_many(["POS-1"])
        assert results == {"POS-1": {"ok": False, "error": "Failed to check stock"}}

    def test_success_flag_required(self, app, pos):
        pos.routes[("POST", "/api/orders/submit")] = {"success": False, "message": "Duplicate order"}
        with pytest.raises(PosApiError, match="Duplicate order"):
            PosApiClient.from_config(app.config).submit_order({})
