"""
Kiosk session and cart tests.

Services are called with an explicit `now` so timers are deterministic;
the route smoke tests at the bottom use the wall clock.

Verifies:
- Sessions time out after the idle period plus the warning period, and a
  timed-out session loses its cart and customer
- A customer is selected once per session; category visibility follows it
- Cart lines are priced for the customer and merged when identical
- Custom joints and prerolls are priced server-side
- The stock gate counts what is already in the cart
"""

import pytest

from kiosk.extensions import db
from kiosk.models import JointOption, KioskSession
from kiosk.services import (
    cart_service,
    customer_service,
    joint_option_service,
    kiosk_session_service,
    preroll_service,
    settings_service,
    stock_service,
)
from kiosk.services.cart_service import CartError
from kiosk.services.joint_option_service import JointOptionError
from kiosk.services.kiosk_session_service import KioskSessionError, KioskSessionNotFound
from kiosk.services.session_machine import SessionExpiredError


T0 = 1_900_000_000.0


@pytest.fixture
def token(db_session):
    _, token = kiosk_session_service.start_session(now=T0)
    return token


@pytest.fixture
def member_token(token, member):
    kiosk_session_service.identify_member(token, "m100", now=T0 + 1)
    return token


@pytest.fixture
def joint_options(db_session):
    joint_option_service.seed_default_options()
    return {o.option_type: o.id for o in db.session.query(JointOption).all()}


class TestSessionLifecycle:
    def test_new_session(self, db_session):
        view, token = kiosk_session_service.start_session(language="th", now=T0)
        assert len(token) == 64
        assert view["state"] == "ACTIVE"
        assert view["language"] == "th"
        assert view["seconds_remaining"] == 60
        assert view["customer"] is None

    def test_unsupported_language_falls_back(self, db_session):
        view, _ = kiosk_session_service.start_session(language="xx", now=T0)
        assert view["language"] == "en"

    def test_unknown_token(self, db_session):
        with pytest.raises(KioskSessionNotFound):
            kiosk_session_service.get_session("nope", now=T0)

    def test_warning_then_timeout_resets_session(self, member_token, product):
        cart_service.add_product(member_token, product_id=product.id, now=T0 + 2)

        view = kiosk_session_service.get_session(member_token, now=T0 + 62)
        assert view["state"] == "EXPIRY_WARNING"
        assert len(view["cart"]) == 1

        view = kiosk_session_service.get_session(member_token, now=T0 + 122)
        assert view["state"] == "EXPIRED"
        assert view["expired_reason"] == "timeout"
        assert view["cart"] == []
        assert view["customer_id"] is None

        with pytest.raises(SessionExpiredError):
            cart_service.add_product(member_token, product_id=product.id, now=T0 + 123)

    def test_continue_keeps_the_cart(self, member_token, product):
        cart_service.add_product(member_token, product_id=product.id, now=T0 + 2)
        kiosk_session_service.get_session(member_token, now=T0 + 70)
        view = kiosk_session_service.continue_session(member_token, now=T0 + 80)
        assert view["state"] == "ACTIVE"
        assert view["seconds_remaining"] == 60
        assert len(view["cart"]) == 1

    def test_joint_builder_extends_idle_timeout(self, token):
        kiosk_session_service.enter_joint_builder(token, now=T0 + 10)
        view = kiosk_session_service.get_session(token, now=T0 + 200)
        assert view["state"] == "ACTIVE"
        assert view["idle_timeout_seconds"] == 300

        view = kiosk_session_service.leave_joint_builder(token, now=T0 + 201)
        assert view["idle_timeout_seconds"] == 60

    def test_only_overrides_are_stored(self, app, token, monkeypatch):
        def row():
            return db.session.query(KioskSession).filter_by(token_hash=kiosk_session_service.hash_token(token)).one()

        assert row().idle_timeout_override is None

        kiosk_session_service.enter_joint_builder(token, now=T0 + 10)
        assert row().idle_timeout_override == 300
        kiosk_session_service.leave_joint_builder(token, now=T0 + 11)
        assert row().idle_timeout_override is None

        # the configured timeout still applies to existing sessions
        monkeypatch.setitem(app.config, "SESSION_IDLE_SECONDS", 90)
        view = kiosk_session_service.touch(token, now=T0 + 12)
        assert view["idle_timeout_seconds"] == 90
        assert view["seconds_remaining"] == 90

    def test_sweep_expires_abandoned_sessions(self, token):
        assert kiosk_session_service.sweep_expired(now=T0 + 30) == 0
        assert kiosk_session_service.sweep_expired(now=T0 + 500) == 1
        view = kiosk_session_service.get_session(token, now=T0 + 501)
        assert view["state"] == "EXPIRED"


class TestCustomerSelection:
    def test_identify_member(self, token, member):
        view = kiosk_session_service.identify_member(token, " m100 ", now=T0 + 1)
        assert view["customer"]["member_id"] == "M100"
        assert view["customer"]["tier"] == "Bronze"
        assert customer_service.get_customer(member.id).visit_count == 1

    def test_unknown_member(self, token):
        with pytest.raises(KioskSessionNotFound, match="Member not found"):
            kiosk_session_service.identify_member(token, "ZZZ", now=T0 + 1)

    def test_customer_selected_once(self, member_token):
        with pytest.raises(KioskSessionError, match="already selected"):
            kiosk_session_service.continue_as_no_member(member_token, now=T0 + 2)

    def test_cart_requires_customer(self, token, product):
        with pytest.raises(KioskSessionError, match="identify as a member"):
            cart_service.add_product(token, product_id=product.id, now=T0 + 1)

    def test_no_member_sees_only_configured_categories(self, token, product):
        kiosk_session_service.continue_as_no_member(token, now=T0 + 1)
        assert kiosk_session_service.menu(token, now=T0 + 2)["categories"] == []
        with pytest.raises(CartError, match="Product not available"):
            cart_service.add_product(token, product_id=product.id, now=T0 + 2)

        settings_service.set_setting("non_member_categories", [product.category_id])
        db.session.commit()
        menu = kiosk_session_service.menu(token, now=T0 + 3)
        assert menu["is_member"] is False
        assert menu["categories"][0]["products"][0]["display_price_cents"] == 50000

    def test_member_menu_uses_member_price(self, member_token, product):
        menu = kiosk_session_service.menu(member_token, now=T0 + 2)
        item = menu["categories"][0]["products"][0]
        assert item["display_price_cents"] == 45000
        assert item["track_stock"] is False


class TestCart:
    def test_member_price_and_merge(self, member_token, product):
        cart_service.add_product(member_token, product_id=product.id, now=T0 + 2)
        view = cart_service.add_product(member_token, product_id=product.id, quantity=2, now=T0 + 3)
        assert len(view["cart"]) == 1
        line = view["cart"][0]
        assert line["quantity"] == 3
        assert line["unit_price_cents"] == 45000
        assert view["totals"]["subtotal_cents"] == 135000
        assert view["totals"]["cashback_cents"] == 13500
        assert view["totals"]["cashback_points"] == 135

    def test_variant_lines(self, member_token, product):
        product.has_variants = True
        product.variants = [{
            "variant_id": "weight",
            "name": "Weight",
            "options": [
                {"option_id": "1g", "name": "1 gram", "price_cents": 50000, "member_price_cents": 45000},
                {"option_id": "3g", "name": "3 grams", "price_cents": 140000},
            ],
        }]
        db.session.commit()

        with pytest.raises(CartError, match="select product options"):
            cart_service.add_product(member_token, product_id=product.id, now=T0 + 2)

        cart_service.add_product(member_token, product_id=product.id, selections={"weight": "1g"}, now=T0 + 2)
        view = cart_service.add_product(member_token, product_id=product.id, selections={"weight": "3g"}, now=T0 + 3)
        assert [line["unit_price_cents"] for line in view["cart"]] == [45000, 140000]
        assert view["cart"][1]["variant_name"] == "3 grams"
        assert view["cart"][1]["stock_variant_id"] == "weight-3g"

        with pytest.raises(CartError, match="Unknown variant option"):
            cart_service.add_product(member_token, product_id=product.id, selections={"weight": "9g"}, now=T0 + 4)

    @pytest.mark.parametrize("quantity", [0, 100, "2"])
    def test_quantity_bounds(self, member_token, product, quantity):
        with pytest.raises(CartError):
            cart_service.add_product(member_token, product_id=product.id, quantity=quantity, now=T0 + 2)

    def test_emptying_open_cart_returns_to_browsing(self, member_token, product):
        view = cart_service.add_product(member_token, product_id=product.id, now=T0 + 2)
        line_id = view["cart"][0]["line_id"]
        assert kiosk_session_service.open_cart(member_token, now=T0 + 3)["state"] == "CART_OPEN"

        view = cart_service.update_quantity(member_token, line_id=line_id, quantity=4, now=T0 + 4)
        assert view["cart"][0]["quantity"] == 4

        view = cart_service.remove_line(member_token, line_id=line_id, now=T0 + 5)
        assert view["cart"] == []
        assert view["state"] == "ACTIVE"

        with pytest.raises(CartError, match="Cart item not found"):
            cart_service.remove_line(member_token, line_id=line_id, now=T0 + 6)

    def test_stock_gate_counts_cart(self, member_token, product):
        product.alert_kiosk_level = 1
        db.session.commit()
        stock_service.add_purchasing(
            supplier=None, notes=None, items=[{"product_id": product.id, "quantity": 2}], created_by="admin"
        )
        cart_service.add_product(member_token, product_id=product.id, quantity=2, now=T0 + 2)
        with pytest.raises(CartError, match=r"Only 2 available \(2 already in cart\)"):
            cart_service.add_product(member_token, product_id=product.id, now=T0 + 3)

    def test_points_slider_is_capped(self, member_token, member, product):
        customer_service.add_points(member.id, 1000)
        cart_service.add_product(member_token, product_id=product.id, now=T0 + 2)
        view = cart_service.set_points_percentage(member_token, percentage=100, now=T0 + 3)
        totals = view["totals"]
        assert totals["max_points_percentage"] == 45
        assert totals["points_usage_percentage"] == 45
        assert totals["points_to_use"] == 450
        assert totals["total_cents"] == 0

    def test_points_slider_members_only(self, token, product):
        kiosk_session_service.continue_as_no_member(token, now=T0 + 1)
        with pytest.raises(CartError, match="Only members"):
            cart_service.set_points_percentage(token, percentage=50, now=T0 + 2)


class TestBuilderLines:
    def selection(self, ids, **filling):
        return {
            "paper": {"option_id": ids["golden-paper"]},
            "filter": {"option_id": ids["glass-10mm"]},
            "filling": filling or {"flower": [{"option_id": ids["flower"], "weight": 0.8}]},
        }

    def test_custom_joint_priced_server_side(self, member_token, joint_options):
        kiosk_session_service.enter_joint_builder(member_token, now=T0 + 2)
        view = cart_service.add_custom_joint(member_token, selection=self.selection(joint_options), now=T0 + 3)
        line = view["cart"][0]
        assert line["kind"] == "custom_joint"
        # 150 paper + 150 filter + 0.8g x 250 flower
        assert line["unit_price_cents"] == 50000
        assert "Paper: Golden Paper" in line["details"]
        assert view["idle_timeout_seconds"] == 60
        assert view["totals"]["cashback_cents"] == 0

    def test_invalid_joint_is_rejected(self, member_token, joint_options):
        selection = self.selection(joint_options, hash=[{"option_id": joint_options["hash"], "weight": 1.0}])
        with pytest.raises(CartError) as exc:
            cart_service.add_custom_joint(member_token, selection=selection, now=T0 + 3)
        assert str(exc.value) == "Invalid joint configuration"
        assert exc.value.details["errors"] == ["Hash-only joint requires 2.0g of tobacco"]

    def test_capacity_comes_from_the_catalog(self, member_token, joint_options):
        filling = {"flower": [{"option_id": joint_options["flower"], "weight": 20}]}
        with pytest.raises(CartError) as exc:
            cart_service.add_custom_joint(member_token, selection=self.selection(joint_options, **filling), now=T0 + 3)
        assert exc.value.details["errors"] == ["Filling exceeds capacity (20g / 1g)"]

        selection = self.selection(joint_options, **filling)
        selection["paper"]["capacity"] = 50
        with pytest.raises(JointOptionError, match="fixed capacity"):
            cart_service.add_custom_joint(member_token, selection=selection, now=T0 + 4)

        view = kiosk_session_service.get_session(member_token, now=T0 + 5)
        assert view["cart"] == []

    def test_cone_size_must_be_standard(self, member_token, joint_options):
        selection = {
            "paper": {"option_id": joint_options["pre-rolled-ck"]},
            "filling": {"flower": [{"option_id": joint_options["flower"], "weight": 1.2}], "total_capacity": 50},
        }
        with pytest.raises(JointOptionError, match="Unsupported size"):
            cart_service.add_custom_joint(member_token, selection=selection, now=T0 + 3)

        selection["filling"]["total_capacity"] = 1.2
        view = cart_service.add_custom_joint(member_token, selection=selection, now=T0 + 4)
        line = view["cart"][0]
        # 40 cone + 1.2g x 250 flower
        assert line["unit_price_cents"] == 34000
        assert "Capacity: 1.2g" in line["details"]

    def test_custom_paper_capacity_from_length(self, member_token, joint_options):
        selection = {
            "paper": {"option_id": joint_options["custom-paper"], "custom_length": "20", "capacity": 50},
            "filter": {"option_id": joint_options["paper-large"]},
            "filling": {"flower": [{"option_id": joint_options["flower"], "weight": 5.0}]},
        }
        view = cart_service.add_custom_joint(member_token, selection=selection, now=T0 + 3)
        details = view["cart"][0]["details"]
        assert "Paper: Custom Rolling Paper (20cm)" in details
        # (20cm - 5cm filter) / 18cm x 7g
        assert "Capacity: 5.8g" in details

    def test_malformed_selection_is_a_bad_request(self, client, member, joint_options):
        token = client.post("/api/kiosk/sessions", json={}).json["token"]
        client.post(f"/api/kiosk/sessions/{token}/identify", json={"member_code": "M100"})

        def add(selection):
            return client.post(
                f"/api/kiosk/sessions/{token}/cart/items",
                json={"kind": "custom_joint", "selection": selection},
            )

        flower = {"flower": [{"option_id": joint_options["flower"], "weight": 1.0}]}
        custom = {"option_id": joint_options["custom-paper"], "custom_length": "long"}
        assert add({"paper": custom, "filter": {"option_id": joint_options["paper-large"]}, "filling": flower}).status_code == 400
        assert add({"paper": "golden", "filling": flower}).status_code == 400
        assert add({"paper": {"option_id": joint_options["golden-paper"]}, "filter": 7, "filling": flower}).status_code == 400
        assert add({"paper": {"option_id": joint_options["golden-paper"]}, "filling": {"worm": "yes"}}).status_code == 400

        resp = add({
            "paper": {"option_id": joint_options["custom-paper"], "custom_length": "20"},
            "filter": {"option_id": joint_options["paper-large"]},
            "filling": flower,
        })
        assert resp.status_code == 200
        assert len(resp.json["cart"]) == 1

    def test_preroll_lines_merge(self, member_token):
        preroll_service.seed_default_data()
        cart_service.add_preroll(member_token, quality="indoor", strain="sativa", size="king", now=T0 + 2)
        view = cart_service.add_preroll(member_token, quality="indoor", strain="sativa", size="king", now=T0 + 3)
        assert len(view["cart"]) == 1
        line = view["cart"][0]
        assert line["name"] == "Prerolls - Indoor - Sativa - King"
        assert line["unit_price_cents"] == 25000
        assert line["quantity"] == 2


class TestKioskRoutes:
    def test_session_routes(self, client, db_session):
        resp = client.post("/api/kiosk/sessions", json={"language": "en"})
        assert resp.status_code == 201
        token = resp.json["token"]
        assert resp.json["session"]["state"] == "ACTIVE"

        assert client.get("/api/kiosk/sessions/unknown").status_code == 404

        resp = client.post(f"/api/kiosk/sessions/{token}/cart/open")
        assert resp.status_code == 409

        resp = client.post(f"/api/kiosk/sessions/{token}/exit")
        assert resp.status_code == 200
        assert resp.json["state"] == "EXPIRED"

        resp = client.post(f"/api/kiosk/sessions/{token}/touch")
        assert resp.status_code == 410
        assert resp.json["reason"] == "exit"

    def test_add_item_route(self, client, member, product):
        token = client.post("/api/kiosk/sessions", json={}).json["token"]
        assert client.post(f"/api/kiosk/sessions/{token}/identify", json={"member_code": "M100"}).status_code == 200

        resp = client.post(f"/api/kiosk/sessions/{token}/cart/items", json={"product_id": product.id, "quantity": 2})
        assert resp.status_code == 200
        assert resp.json["totals"]["subtotal_cents"] == 90000

        bad = client.post(f"/api/kiosk/sessions/{token}/cart/items", json={"kind": "bundle"})
        assert bad.status_code == 400

        missing = client.delete(f"/api/kiosk/sessions/{token}/cart/items/abc")
        assert missing.status_code == 404
