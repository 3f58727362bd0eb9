"""
Stock ledger tests.

Stock is the fold of purchasing and sales movements, floored at zero,
keyed by product or product-variant.
"""

import pytest

from kiosk.extensions import db
from kiosk.models import StockMovement
from kiosk.services import stock_service
from kiosk.services.stock_service import StockError, fold_movements


class TestFold:
    def test_fold_by_key(self):
        movements = [
            {"product_id": 1, "quantity": 10, "status": "purchasing"},
            {"product_id": 1, "quantity": 3, "status": "sales"},
            {"product_id": 1, "variant_id": "5g", "quantity": 4, "status": "purchasing"},
        ]
        summary = fold_movements(movements)
        assert summary["1"] == {"purchased": 10, "sold": 3, "stock": 7}
        assert summary["1-5g"]["stock"] == 4

    def test_stock_never_negative(self):
        movements = [
            {"product_id": 2, "quantity": 1, "status": "purchasing"},
            {"product_id": 2, "quantity": 5, "status": "sales"},
        ]
        assert fold_movements(movements)["2"]["stock"] == 0

    def test_unknown_status_ignored(self):
        summary = fold_movements([{"product_id": 3, "quantity": 9, "status": "adjustment"}])
        assert summary["3"] == {"purchased": 0, "sold": 0, "stock": 0}


class TestPurchasing:
    def test_purchase_order_creates_movements(self, db_session, product):
        order = stock_service.add_purchasing(
            supplier="Farm Co",
            notes="Weekly restock",
            items=[
                {"product_id": product.id, "quantity": 10, "price_cents": 20000},
                {"product_id": product.id, "quantity": 2, "price_cents": 20000, "variant_id": "3g"},
            ],
            created_by="admin",
        )
        assert order["total_items"] == 2
        assert order["total_quantity"] == 12
        assert order["total_amount_cents"] == 240000
        assert len(order["movements"]) == 2
        assert stock_service.calculate_product_stock(product.id) == 10
        assert stock_service.calculate_product_stock(product.id, "3g") == 2

    def test_empty_order_rejected(self, db_session):
        with pytest.raises(StockError, match="at least one item"):
            stock_service.add_purchasing(supplier=None, notes=None, items=[], created_by="admin")

    def test_unknown_product_rejected(self, db_session):
        with pytest.raises(StockError, match="Product not found"):
            stock_service.add_purchasing(
                supplier=None, notes=None, items=[{"product_id": 999, "quantity": 1}], created_by="admin"
            )

    def test_purchasing_api(self, client, admin_headers, product):
        resp = client.post(
            "/api/stock/purchasing",
            json={"supplier": "Farm Co", "items": [{"product_id": product.id, "quantity": 5, "price_cents": 100}]},
            headers=admin_headers,
        )
        assert resp.status_code == 201

        stock = client.get(f"/api/stock/products/{product.id}", headers=admin_headers)
        assert stock.json["stock"] == 5

        bad = client.post(
            "/api/stock/purchasing",
            json={"items": [{"product_id": product.id, "quantity": 0}]},
            headers=admin_headers,
        )
        assert bad.status_code == 400
        assert stock_service.calculate_product_stock(product.id) == 5

    def test_staff_cannot_purchase(self, client, staff_headers, product):
        resp = client.post(
            "/api/stock/purchasing",
            json={"items": [{"product_id": product.id, "quantity": 5}]},
            headers=staff_headers,
        )
        assert resp.status_code == 403


class TestSales:
    def test_sale_movements_skip_non_catalog_lines(self, db_session, product):
        lines = [
            {"product_id": product.id, "quantity": 2, "unit_price_cents": 45000},
            {"product_id": None, "quantity": 1, "unit_price_cents": 80000},
        ]
        movements = stock_service.record_sale_movements(
            transaction_code="TRX-00001", lines=lines, created_by="KIOSK-TEST"
        )
        db.session.commit()
        assert len(movements) == 1
        assert movements[0].notes == "Kiosk sale - Transaction: TRX-00001"
        assert db.session.query(StockMovement).filter_by(status="sales").count() == 1

    def test_summary_totals(self, db_session, product):
        stock_service.add_purchasing(
            supplier=None, notes=None, items=[{"product_id": product.id, "quantity": 4}], created_by="admin"
        )
        stock_service.record_sale_movements(
            transaction_code="TRX-00002", lines=[{"product_id": product.id, "quantity": 1}], created_by="kiosk"
        )
        db.session.commit()
        summary = stock_service.get_stock_summary()
        assert summary["total_purchased"] == 4
        assert summary["total_sold"] == 1
        assert summary["total_stock"] == 3


class TestKioskGate:
    def test_untracked_product_is_unlimited(self, db_session, product):
        assert stock_service.can_add_to_cart(product, requested=100, in_cart=0)["can_add"] is True
        assert stock_service.stock_flags(product)["track_stock"] is False

    def test_out_of_stock(self, db_session, product):
        product.alert_kiosk_level = 2
        db.session.commit()
        result = stock_service.can_add_to_cart(product, requested=1, in_cart=0)
        assert result == {"can_add": False, "reason": "Out of stock", "stock": 0}
        assert stock_service.stock_flags(product)["is_out_of_stock"] is True

    def test_cart_quantity_counts_against_stock(self, db_session, product):
        product.alert_kiosk_level = 2
        db.session.commit()
        stock_service.add_purchasing(
            supplier=None, notes=None, items=[{"product_id": product.id, "quantity": 3}], created_by="admin"
        )
        assert stock_service.can_add_to_cart(product, requested=1, in_cart=2)["can_add"] is True
        result = stock_service.can_add_to_cart(product, requested=2, in_cart=2)
        assert result["can_add"] is False
        assert result["reason"] == "Only 3 available (2 already in cart)"

        flags = stock_service.stock_flags(product)
        assert flags["is_low_stock"] is False
        assert flags["stock"] == 3
