# Overview: Flask API routes for category cashback rules.

# backend/kiosk/routes/cashback.py
from flask import Blueprint, jsonify, request, current_app

from ..models import CashbackRule
from ..services import cashback_service
from ..services.cashback_service import CashbackError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    check_cashback_rule,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_role

CASHBACK_RULE_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "rate_bps", "is_active"},
    required_on_create={"category_id", "rate_bps"},
    rules=(check_cashback_rule,),
)

cashback_bp = Blueprint("cashback", __name__, url_prefix="/api/cashback-rules")


@cashback_bp.get("")
@require_auth
def list_rules_route():
    return jsonify({"rules": cashback_service.list_rules()}), 200


@cashback_bp.post("")
@require_auth
@require_role("admin")
def create_rule_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=CashbackRule, payload=payload, policy=CASHBACK_RULE_POLICY, partial=False)
        created = cashback_service.create_rule(
            category_id=patch["category_id"],
            rate_bps=patch["rate_bps"],
            is_active=patch.get("is_active", True),
        )
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CashbackError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create cashback rule")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(created), 201


@cashback_bp.put("/<int:rule_id>")
@require_auth
@require_role("admin")
def update_rule_route(rule_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=CashbackRule, payload=payload, policy=CASHBACK_RULE_POLICY, partial=True)
        updated = cashback_service.update_rule(rule_id=rule_id, patch=patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CashbackError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update cashback rule")
        return jsonify({"error": "Internal server error"}), 500

    if updated is None:
        return jsonify({"error": "Cashback rule not found"}), 404
    return jsonify(updated), 200


@cashback_bp.post("/<int:rule_id>/toggle")
@require_auth
@require_role("admin")
def toggle_rule_route(rule_id: int):
    toggled = cashback_service.toggle_rule(rule_id=rule_id)
    if toggled is None:
        return jsonify({"error": "Cashback rule not found"}), 404
    return jsonify(toggled), 200


@cashback_bp.delete("/<int:rule_id>")
@require_auth
@require_role("admin")
def delete_rule_route(rule_id: int):
    if not cashback_service.delete_rule(rule_id=rule_id):
        return jsonify({"error": "Cashback rule not found"}), 404
    return jsonify({"ok": True}), 200
