"""
Transaction tests.

Verifies:
- Sequential codes per prefix; switching the prefix never reuses a code
- Transactions require items and snapshot them
- Refunds append a refund row and flip the original
- Sales statistics
"""

import pytest

from kiosk.extensions import db
from kiosk.services import settings_service, transaction_service
from kiosk.services.transaction_service import TransactionError


def make_sale(total_cents=45000, **kwargs):
    items = kwargs.pop("items", [{"name": "Lemon Haze 1g", "unit_price_cents": total_cents, "quantity": 1}])
    return transaction_service.create_transaction(
        items=items,
        subtotal_cents=total_cents,
        total_cents=total_cents,
        payment_method="cash",
        **kwargs,
    )


class TestTransactionCodes:
    def test_sequential_codes(self, db_session):
        assert transaction_service.generate_transaction_code() == "TRX-00001"
        assert transaction_service.generate_transaction_code() == "TRX-00002"

    def test_prefix_change_starts_new_sequence(self, db_session):
        make_sale()
        make_sale()
        settings_service.set_setting("transaction_prefix", "abc")
        db.session.commit()
        assert make_sale().transaction_code == "ABC-00001"

        settings_service.set_setting("transaction_prefix", "TRX")
        db.session.commit()
        assert make_sale().transaction_code == "TRX-00003"


class TestCreateTransaction:
    def test_requires_items(self, db_session):
        with pytest.raises(TransactionError, match="at least one item"):
            make_sale(items=[])

    def test_snapshot_and_defaults(self, db_session):
        tx = make_sale(items=[{"name": "Lemon Haze 1g", "unit_price_cents": 45000, "quantity": 2, "extra": "dropped"}],
                       total_cents=90000)
        data = tx.to_dict()
        assert data["order_number"] == data["transaction_code"]
        assert data["customer_name"] == "No Member"
        assert data["items"][0]["line_total_cents"] == 90000
        assert "extra" not in data["items"][0]
        assert data["status"] == "completed"


class TestRefunds:
    def test_full_refund(self, db_session):
        sale = make_sale()
        result = transaction_service.refund_transaction(transaction_id=sale.id, reason="Damaged", cashier="admin")
        assert result["refund"]["total_cents"] == -45000
        assert result["refund"]["transaction_type"] == "refund"
        assert result["refund"]["original_transaction_id"] == sale.id
        assert result["original"]["status"] == "refunded"

    def test_partial_refund_bounds(self, db_session):
        sale = make_sale()
        with pytest.raises(TransactionError, match="between 1 and the original total"):
            transaction_service.refund_transaction(
                transaction_id=sale.id, reason="x", cashier="admin", amount_cents=50000
            )
        result = transaction_service.refund_transaction(
            transaction_id=sale.id, reason="x", cashier="admin", amount_cents=5000
        )
        assert result["refund"]["total_cents"] == -5000

    def test_refund_once(self, db_session):
        sale = make_sale()
        transaction_service.refund_transaction(transaction_id=sale.id, reason="x", cashier="admin")
        with pytest.raises(TransactionError, match="Only completed sales"):
            transaction_service.refund_transaction(transaction_id=sale.id, reason="x", cashier="admin")

    def test_reason_required(self, db_session):
        sale = make_sale()
        with pytest.raises(TransactionError, match="reason is required"):
            transaction_service.refund_transaction(transaction_id=sale.id, reason="  ", cashier="admin")

    def test_refund_api(self, client, admin_headers, staff_headers):
        sale_id = make_sale().id
        denied = client.post(f"/api/transactions/{sale_id}/refund", json={"reason": "x"}, headers=staff_headers)
        assert denied.status_code == 403

        resp = client.post(f"/api/transactions/{sale_id}/refund", json={"reason": "Wrong item"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["original"]["status"] == "refunded"

        missing = client.post("/api/transactions/9999/refund", json={"reason": "x"}, headers=admin_headers)
        assert missing.status_code == 404


class TestStats:
    def test_stats_exclude_refunded_revenue(self, db_session):
        make_sale(10000)
        make_sale(30000)
        refunded = make_sale(50000)
        transaction_service.refund_transaction(transaction_id=refunded.id, reason="x", cashier="admin")

        stats = transaction_service.transaction_stats()
        assert stats["total_transactions"] == 3
        assert stats["completed_transactions"] == 2
        assert stats["refunded_transactions"] == 1
        assert stats["total_revenue_cents"] == 40000
        assert stats["average_transaction_cents"] == 20000

    def test_list_and_lookup_api(self, client, staff_headers):
        code = make_sale().transaction_code
        listed = client.get("/api/transactions?search=TRX", headers=staff_headers)
        assert listed.status_code == 200
        assert listed.json["pagination"]["total"] == 1

        found = client.get(f"/api/transactions/code/{code}", headers=staff_headers)
        assert found.json["transaction_code"] == code

        bad = client.get("/api/transactions/stats?start=yesterday", headers=staff_headers)
        assert bad.status_code == 400
