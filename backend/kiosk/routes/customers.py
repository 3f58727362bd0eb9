# Overview: Flask API routes for customers and their points ledger.

# backend/kiosk/routes/customers.py
from flask import Blueprint, request, jsonify, current_app, g

from ..models import Customer
from ..services import customer_service
from ..services.customer_service import CustomerError, PointsError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from ..decorators import require_auth, require_role

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(customer_service.CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    return jsonify({
        "customers": customer_service.list_customers(
            search=request.args.get("search"),
            active_only=request.args.get("active_only", "").lower() == "true",
        )
    }), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(customer_id)
    if customer is None:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify(customer_service.customer_summary(customer)), 200


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        created = customer_service.create_customer(patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CustomerError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(created), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        updated = customer_service.update_customer(customer_id=customer_id, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CustomerError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500

    if updated is None:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify(updated), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role("admin")
def delete_customer_route(customer_id: int):
    """Deactivates the member; history is kept."""
    if not customer_service.delete_customer(customer_id=customer_id):
        return jsonify({"error": "Customer not found"}), 404
    return jsonify({"ok": True}), 200


@customers_bp.get("/<int:customer_id>/points")
@require_auth
def points_history_route(customer_id: int):
    if customer_service.get_customer(customer_id) is None:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify({
        "balance": customer_service.get_points_balance(customer_id),
        "history": customer_service.get_points_history(customer_id, limit=request.args.get("limit", type=int)),
    }), 200


@customers_bp.post("/<int:customer_id>/points/adjust")
@require_auth
def adjust_points_route(customer_id: int):
    """Body: {"amount": int > 0, "adjustment_type": "add" | "subtract", "reason": str}"""
    data = request.get_json(silent=True) or {}
    try:
        result = customer_service.adjust_points(
            customer_id=customer_id,
            amount=data.get("amount"),
            adjustment_type=data.get("adjustment_type") or "",
            reason=data.get("reason") or "",
            user_id=g.current_user.id,
        )
    except PointsError as e:
        status = 404 if str(e) == "Customer not found" else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except Exception:
        current_app.logger.exception("Failed to adjust points")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200
