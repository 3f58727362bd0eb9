# Overview: Flask API routes for sales history, refunds and sales statistics.

# backend/kiosk/routes/transactions.py
from flask import Blueprint, request, jsonify, current_app, g

from ..services import transaction_service
from ..services.transaction_service import TransactionError
from ..time_utils import parse_iso_datetime, utcnow
from ..decorators import require_auth, require_role

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _date_range() -> tuple:
    """start/end query params as ISO-8601; raises ValueError on bad input."""
    return (
        parse_iso_datetime(request.args.get("start")),
        parse_iso_datetime(request.args.get("end")),
    )


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Query params:
    - page, per_page: int (default 1, 50; per_page max 200)
    - status: completed | refunded
    - customer_id: int
    - search: transaction code or customer name
    - start, end: ISO-8601 datetimes
    """
    try:
        start, end = _date_range()
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    result = transaction_service.list_transactions(
        page=request.args.get("page", default=1, type=int),
        per_page=request.args.get("per_page", default=50, type=int),
        status=request.args.get("status"),
        customer_id=request.args.get("customer_id", type=int),
        search=request.args.get("search"),
        start=start,
        end=end,
    )
    return jsonify(result), 200


@transactions_bp.get("/stats")
@require_auth
def stats_route():
    try:
        start, end = _date_range()
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400
    return jsonify(transaction_service.transaction_stats(start=start, end=end)), 200


@transactions_bp.get("/daily")
@require_auth
def daily_route():
    """?date=YYYY-MM-DD (default today, UTC)"""
    raw = request.args.get("date")
    try:
        day = parse_iso_datetime(raw) if raw else utcnow()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    return jsonify(transaction_service.daily_summary(day)), 200


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    tx = transaction_service.get_transaction(transaction_id)
    if tx is None:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify(tx.to_dict()), 200


@transactions_bp.get("/code/<code>")
@require_auth
def get_by_code_route(code: str):
    tx = transaction_service.get_by_code(code)
    if tx is None:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify(tx.to_dict()), 200


@transactions_bp.post("/<int:transaction_id>/refund")
@require_auth
@require_role("admin")
def refund_route(transaction_id: int):
    """Body: {"reason": str, "amount_cents"?: int}"""
    data = request.get_json(silent=True) or {}
    amount = data.get("amount_cents")
    if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int)):
        return jsonify({"error": "amount_cents must be an integer"}), 400

    try:
        result = transaction_service.refund_transaction(
            transaction_id=transaction_id,
            reason=data.get("reason") or "",
            cashier=g.current_user.username,
            amount_cents=amount,
        )
    except TransactionError as e:
        status = 404 if str(e) == "Transaction not found" else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except Exception:
        current_app.logger.exception("Failed to refund transaction")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200
