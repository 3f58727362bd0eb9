# Overview: Flask API routes for the pending points review queue.

# backend/kiosk/routes/points.py
"""
Pending points review.

Cashback earned at the kiosk lands in the queue; staff approve it into the
member's ledger or discard it.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..services import pending_points_service
from ..services.customer_service import PointsError
from ..services.pending_points_service import PendingPointsError
from ..decorators import require_auth

points_bp = Blueprint("points", __name__, url_prefix="/api/points")


def _ids(data: dict) -> list[int] | None:
    ids = data.get("ids")
    if not isinstance(ids, list) or not ids:
        return None
    if any(isinstance(i, bool) or not isinstance(i, int) for i in ids):
        return None
    return ids


@points_bp.get("/pending")
@require_auth
def list_pending_route():
    return jsonify({
        "pending": pending_points_service.list_pending(customer_id=request.args.get("customer_id", type=int)),
    }), 200


@points_bp.get("/processed")
@require_auth
def list_processed_route():
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    return jsonify({"processed": pending_points_service.list_processed(limit=limit)}), 200


@points_bp.post("/pending/<int:pending_id>/approve")
@require_auth
def approve_route(pending_id: int):
    try:
        entry = pending_points_service.approve(pending_id, processed_by=g.current_user.username)
    except (PendingPointsError, PointsError) as e:
        status = 404 if str(e) == "Pending point not found" else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except Exception:
        current_app.logger.exception("Failed to approve pending points")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(entry), 200


@points_bp.post("/pending/<int:pending_id>/discard")
@require_auth
def discard_route(pending_id: int):
    try:
        entry = pending_points_service.discard(pending_id, processed_by=g.current_user.username)
    except PendingPointsError as e:
        status = 404 if str(e) == "Pending point not found" else 400
        return jsonify({"error": str(e), "details": e.details}), status
    return jsonify(entry), 200


@points_bp.post("/pending/batch-approve")
@require_auth
def batch_approve_route():
    ids = _ids(request.get_json(silent=True) or {})
    if ids is None:
        return jsonify({"error": "ids must be a non-empty list of integers"}), 400
    return jsonify({"results": pending_points_service.batch_approve(ids, processed_by=g.current_user.username)}), 200


@points_bp.post("/pending/batch-discard")
@require_auth
def batch_discard_route():
    ids = _ids(request.get_json(silent=True) or {})
    if ids is None:
        return jsonify({"error": "ids must be a non-empty list of integers"}), 400
    return jsonify({"results": pending_points_service.batch_discard(ids, processed_by=g.current_user.username)}), 200
