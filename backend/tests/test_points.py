"""
Loyalty points tests.

Verifies:
- The balance is the fold of the ledger and never goes negative
- Redemption slider snapping and capping
- Pending points are applied exactly once on approval
- Manual adjustments and the review queue API
"""

import pytest

from kiosk.services import customer_service, pending_points_service
from kiosk.services.customer_service import (
    PointsError,
    calculate_redemption,
    calculate_total_points,
    get_tier,
    max_redemption_percentage,
    snap_percentage,
)
from kiosk.services.pending_points_service import PendingPointsError


# =============================================================================
# PURE CALCULATIONS
# =============================================================================


class TestPointCalculations:
    def test_fold(self):
        entries = [
            {"amount": 100, "type": "added"},
            {"amount": 30, "type": "minus"},
            {"amount": 5, "type": "added"},
        ]
        assert calculate_total_points(entries) == 75

    @pytest.mark.parametrize(
        "points,tier",
        [(0, "Bronze"), (499, "Bronze"), (500, "Silver"), (1000, "Gold"), (2500, "Platinum")],
    )
    def test_tiers(self, points, tier):
        assert get_tier(points) == tier

    @pytest.mark.parametrize("raw,snapped", [(3, 0), (48, 50), (79, 75), (97, 100), (40, 40)])
    def test_snap(self, raw, snapped):
        assert snap_percentage(raw) == snapped

    def test_cap_when_balance_covers_order(self):
        # 1000 points = 1000 baht against a 500 baht order
        assert max_redemption_percentage(total_points=1000, subtotal_cents=50000, point_value_cents=100) == 50

    def test_no_cap_when_balance_is_smaller(self):
        assert max_redemption_percentage(total_points=200, subtotal_cents=50000, point_value_cents=100) == 100

    def test_no_points_no_redemption(self):
        assert max_redemption_percentage(total_points=0, subtotal_cents=50000, point_value_cents=100) == 0

    def test_redemption_capped_at_order_total(self):
        result = calculate_redemption(total_points=1000, subtotal_cents=50000, percentage=100, point_value_cents=100)
        assert result["percentage"] == 50
        assert result["points_to_use"] == 500
        assert result["points_value_cents"] == 50000
        assert result["total_after_points_cents"] == 0

    def test_partial_redemption(self):
        result = calculate_redemption(total_points=200, subtotal_cents=50000, percentage=30, point_value_cents=100)
        assert result["points_to_use"] == 60
        assert result["total_after_points_cents"] == 44000

    def test_out_of_range_percentage_is_clamped(self):
        result = calculate_redemption(total_points=200, subtotal_cents=50000, percentage=150, point_value_cents=100)
        assert result["percentage"] == 100
        assert result["points_to_use"] == 200


# =============================================================================
# LEDGER
# =============================================================================


class TestLedger:
    def test_add_and_subtract(self, member):
        customer_service.add_points(member.id, 100, reason="Welcome")
        customer_service.subtract_points(member.id, 40, reason="Order")
        assert customer_service.get_points_balance(member.id) == 60
        history = customer_service.get_points_history(member.id)
        assert [h["type"] for h in history] == ["minus", "added"]

    def test_subtract_more_than_balance_fails(self, member):
        customer_service.add_points(member.id, 10)
        with pytest.raises(PointsError) as exc:
            customer_service.subtract_points(member.id, 11)
        assert str(exc.value) == "Insufficient points"
        assert exc.value.details == {"balance": 10, "requested": 11}
        assert customer_service.get_points_balance(member.id) == 10

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_amount_must_be_positive_integer(self, member, amount):
        with pytest.raises(PointsError):
            customer_service.add_points(member.id, amount)

    def test_unknown_customer(self, db_session):
        with pytest.raises(PointsError, match="Customer not found"):
            customer_service.add_points(9999, 5)

    def test_summary_includes_balance_and_tier(self, member):
        customer_service.add_points(member.id, 600)
        summary = customer_service.customer_summary(member)
        assert summary["points"] == 600
        assert summary["tier"] == "Silver"

    def test_adjust_requires_reason(self, member):
        with pytest.raises(PointsError, match="reason"):
            customer_service.adjust_points(
                customer_id=member.id, amount=5, adjustment_type="add", reason=" ", user_id=None
            )

    def test_adjust_points_api(self, client, staff_headers, member):
        resp = client.post(
            f"/api/customers/{member.id}/points/adjust",
            json={"amount": 50, "adjustment_type": "add", "reason": "Birthday bonus"},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert resp.json["balance"] == 50
        assert resp.json["entry"]["is_manual_adjustment"] is True

        resp = client.post(
            f"/api/customers/{member.id}/points/adjust",
            json={"amount": 80, "adjustment_type": "subtract", "reason": "Correction"},
            headers=staff_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Insufficient points"

        missing = client.post(
            "/api/customers/9999/points/adjust",
            json={"amount": 5, "adjustment_type": "add", "reason": "x"},
            headers=staff_headers,
        )
        assert missing.status_code == 404

        history = client.get(f"/api/customers/{member.id}/points", headers=staff_headers)
        assert history.json["balance"] == 50


# =============================================================================
# PENDING POINTS
# =============================================================================


class TestPendingPoints:
    def test_approve_applies_once(self, member):
        entry = pending_points_service.create_pending_points(
            customer_id=member.id, points_amount=45, transaction_code="TRX-00001", reason="Purchase Cashback"
        )
        result = pending_points_service.approve(entry.id, processed_by="staff")
        assert result["status"] == "approved"
        assert result["processed_by"] == "staff"
        assert customer_service.get_points_balance(member.id) == 45

        with pytest.raises(PendingPointsError, match="already approved"):
            pending_points_service.approve(entry.id, processed_by="staff")
        assert customer_service.get_points_balance(member.id) == 45

    def test_discard_has_no_ledger_effect(self, member):
        entry = pending_points_service.create_pending_points(customer_id=member.id, points_amount=20)
        pending_points_service.discard(entry.id, processed_by="staff")
        assert customer_service.get_points_balance(member.id) == 0
        assert pending_points_service.list_pending() == []
        assert pending_points_service.list_processed()[0]["status"] == "discarded"

    def test_negative_entry_beyond_balance_stays_pending(self, member):
        entry = pending_points_service.create_pending_points(customer_id=member.id, points_amount=-30)
        with pytest.raises(PointsError):
            pending_points_service.approve(entry.id, processed_by="staff")
        pending = pending_points_service.list_pending(customer_id=member.id)
        assert [p["id"] for p in pending] == [entry.id]

    def test_zero_amount_rejected(self, member):
        with pytest.raises(PendingPointsError):
            pending_points_service.create_pending_points(customer_id=member.id, points_amount=0)

    def test_batch_continues_past_failures(self, member):
        first = pending_points_service.create_pending_points(customer_id=member.id, points_amount=10)
        second = pending_points_service.create_pending_points(customer_id=member.id, points_amount=15)
        results = pending_points_service.batch_approve([first.id, 9999, second.id], processed_by="staff")
        assert [r["success"] for r in results] == [True, False, True]
        assert results[1]["error"] == "Pending point not found"
        assert customer_service.get_points_balance(member.id) == 25

    def test_review_api(self, client, staff_headers, member):
        entry = pending_points_service.create_pending_points(customer_id=member.id, points_amount=12)
        entry_id = entry.id

        listed = client.get("/api/points/pending", headers=staff_headers)
        assert [p["id"] for p in listed.json["pending"]] == [entry_id]

        approved = client.post(f"/api/points/pending/{entry_id}/approve", headers=staff_headers)
        assert approved.status_code == 200
        assert approved.json["processed_by"] == "staff"

        again = client.post(f"/api/points/pending/{entry_id}/approve", headers=staff_headers)
        assert again.status_code == 400

        missing = client.post("/api/points/pending/9999/discard", headers=staff_headers)
        assert missing.status_code == 404

        bad_batch = client.post("/api/points/pending/batch-approve", json={"ids": []}, headers=staff_headers)
        assert bad_batch.status_code == 400

    def test_review_requires_auth(self, client, db_session):
        assert client.get("/api/points/pending").status_code == 401
