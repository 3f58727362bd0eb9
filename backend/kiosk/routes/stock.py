# Overview: Flask API routes for the stock ledger and purchase orders.

# backend/kiosk/routes/stock.py
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import stock_service
from ..services.stock_service import MOVEMENT_STATUSES, StockError
from ..decorators import require_auth, require_role

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/summary")
@require_auth
def summary_route():
    return jsonify(stock_service.get_stock_summary()), 200


@stock_bp.get("/products/<int:product_id>")
@require_auth
def product_stock_route(product_id: int):
    variant_id = request.args.get("variant_id")
    return jsonify({
        "product_id": product_id,
        "variant_id": variant_id or "",
        "stock": stock_service.calculate_product_stock(product_id, variant_id),
    }), 200


@stock_bp.get("/movements")
@require_auth
def movements_route():
    status = request.args.get("status")
    if status and status not in MOVEMENT_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(MOVEMENT_STATUSES)}"}), 400
    limit = min(request.args.get("limit", default=200, type=int) or 200, 1000)
    return jsonify({
        "movements": stock_service.list_movements(
            product_id=request.args.get("product_id", type=int), status=status, limit=limit
        ),
    }), 200


@stock_bp.get("/purchasing")
@require_auth
def list_purchasing_route():
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    return jsonify({"purchasings": stock_service.list_purchasings(limit=limit)}), 200


@stock_bp.post("/purchasing")
@require_auth
@require_role("admin")
def add_purchasing_route():
    """
    Body:
        {"supplier"?, "notes"?, "items": [{"product_id", "quantity", "price_cents",
                                          "variant_id"?, "variant_name"?}]}
    """
    data = request.get_json(silent=True) or {}
    items = data.get("items")
    if not isinstance(items, list) or any(not isinstance(i, dict) for i in items):
        return jsonify({"error": "items must be a list of objects"}), 400

    try:
        order = stock_service.add_purchasing(
            supplier=data.get("supplier"),
            notes=data.get("notes"),
            items=items,
            created_by=g.current_user.username,
        )
    except StockError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record purchase order")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(order), 201
