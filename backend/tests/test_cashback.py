"""
Cashback calculation and category rule tests.

Verifies:
- Product cashback beats the category rule
- Minimum purchase, fixed and percentage modes
- Custom joints and No-Member customers earn nothing
- Category rule CRUD through the API
"""

import pytest

from kiosk.services import cashback_service
from kiosk.services.cashback_service import calculate_cart_cashback, calculate_line_cashback


def line(**overrides):
    base = {
        "line_id": "l1",
        "kind": "product",
        "name": "Lemon Haze",
        "category_id": 7,
        "unit_price_cents": 45000,
        "quantity": 2,
        "cashback": {"enabled": True, "type": "percentage", "value": 1000, "min_purchase_cents": None},
    }
    base.update(overrides)
    return base


class TestLineCashback:
    def test_product_percentage(self):
        result = calculate_line_cashback(line(), {7: 500})
        assert result == {"amount_cents": 9000, "source": "product", "rate": 1000}

    def test_percentage_is_floored(self):
        result = calculate_line_cashback(line(unit_price_cents=999, quantity=1), {})
        assert result["amount_cents"] == 99

    def test_product_fixed_per_unit(self):
        result = calculate_line_cashback(
            line(quantity=3, cashback={"enabled": True, "type": "fixed", "value": 500}), {}
        )
        assert result["amount_cents"] == 1500

    def test_minimum_purchase_not_met(self):
        result = calculate_line_cashback(
            line(cashback={"enabled": True, "type": "percentage", "value": 1000, "min_purchase_cents": 100000}),
            {7: 500},
        )
        assert result == {"amount_cents": 0, "source": "minimum_not_met", "rate": 1000}

    def test_category_rule_when_product_cashback_disabled(self):
        result = calculate_line_cashback(line(cashback={"enabled": False, "value": 1000}), {7: 500})
        assert result == {"amount_cents": 4500, "source": "category", "rate": 500}

    def test_zero_product_value_falls_back_to_category(self):
        result = calculate_line_cashback(line(cashback={"enabled": True, "type": "percentage", "value": 0}), {7: 250})
        assert result["source"] == "category"
        assert result["amount_cents"] == 2250

    def test_no_rule(self):
        result = calculate_line_cashback(line(cashback=None, category_id=99), {7: 500})
        assert result == {"amount_cents": 0, "source": "none", "rate": 0}

    def test_custom_joint_never_earns(self):
        result = calculate_line_cashback(line(kind="custom_joint", category_id=7), {7: 500})
        assert result["amount_cents"] == 0


class TestCartCashback:
    def test_member_cart_totals_and_points(self):
        lines = [line(), line(line_id="l2", cashback=None, unit_price_cents=10000, quantity=1)]
        result = calculate_cart_cashback(lines, {7: 500}, is_member=True, point_value_cents=100)
        assert result["total_cents"] == 9000 + 500
        assert result["points"] == 95
        assert [b["source"] for b in result["breakdown"]] == ["product", "category"]
        assert result["breakdown"][0]["points"] == 90

    def test_points_are_floored(self):
        lines = [line(unit_price_cents=1999, quantity=1)]
        result = calculate_cart_cashback(lines, {}, is_member=True, point_value_cents=100)
        assert result["total_cents"] == 199
        assert result["points"] == 1

    def test_no_member_earns_nothing(self):
        result = calculate_cart_cashback([line()], {7: 500}, is_member=False, point_value_cents=100)
        assert result["total_cents"] == 0
        assert result["points"] == 0
        assert result["breakdown"][0]["source"] == "none"


class TestCashbackRules:
    def test_active_rules_map(self, db_session, category):
        cashback_service.create_rule(category_id=category.id, rate_bps=300)
        assert cashback_service.active_rules_map() == {category.id: 300}

    def test_rules_api(self, client, admin_headers, category):
        resp = client.post("/api/cashback-rules", json={"category_id": category.id, "rate_bps": 500}, headers=admin_headers)
        assert resp.status_code == 201
        rule_id = resp.json["id"]

        dup = client.post("/api/cashback-rules", json={"category_id": category.id, "rate_bps": 100}, headers=admin_headers)
        assert dup.status_code == 409

        toggled = client.post(f"/api/cashback-rules/{rule_id}/toggle", headers=admin_headers)
        assert toggled.status_code == 200
        assert toggled.json["is_active"] is False
        assert cashback_service.active_rules_map() == {}

        assert client.delete(f"/api/cashback-rules/{rule_id}", headers=admin_headers).status_code == 200
        assert client.get("/api/cashback-rules", headers=admin_headers).json["rules"] == []

    def test_staff_cannot_create_rules(self, client, staff_headers, category):
        resp = client.post("/api/cashback-rules", json={"category_id": category.id, "rate_bps": 500}, headers=staff_headers)
        assert resp.status_code == 403

    @pytest.mark.parametrize("rate", [-1, 10001])
    def test_rate_bounds(self, client, admin_headers, category, rate):
        resp = client.post("/api/cashback-rules", json={"category_id": category.id, "rate_bps": rate}, headers=admin_headers)
        assert resp.status_code == 400
