# Overview: Flask API routes for joint builder option administration.

# backend/kiosk/routes/joint_builder.py
"""
Joint builder options (papers, filters, fillings, externals).

The kiosk reads the active catalog from /api/kiosk/joint-options; these
routes maintain it.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import JointOption
from ..services import joint_option_service
from ..services.joint_option_service import JointOptionError
from ..validation import ModelValidationPolicy, validate_payload, check_joint_option, ValidationError
from ..decorators import require_auth, require_role

JOINT_OPTION_POLICY = ModelValidationPolicy(
    writable_fields=set(joint_option_service.OPTION_MUTABLE_FIELDS),
    required_on_create={"kind", "option_type", "name"},
    rules=(check_joint_option,),
)

joint_builder_bp = Blueprint("joint_builder", __name__, url_prefix="/api/joint-options")


@joint_builder_bp.get("")
@require_auth
def list_options_route():
    return jsonify({
        "options": joint_option_service.list_options(
            kind=request.args.get("kind"),
            active_only=request.args.get("active_only", "").lower() == "true",
        )
    }), 200


@joint_builder_bp.post("")
@require_auth
@require_role("admin")
def create_option_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=JointOption, payload=payload, policy=JOINT_OPTION_POLICY, partial=False)
        created = joint_option_service.create_option(patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except JointOptionError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create joint option")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(created), 201


@joint_builder_bp.put("/<int:option_id>")
@require_auth
@require_role("admin")
def update_option_route(option_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=JointOption, payload=payload, policy=JOINT_OPTION_POLICY, partial=True)
        updated = joint_option_service.update_option(option_id=option_id, patch=patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except JointOptionError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update joint option")
        return jsonify({"error": "Internal server error"}), 500

    if updated is None:
        return jsonify({"error": "Joint option not found"}), 404
    return jsonify(updated), 200


@joint_builder_bp.delete("/<int:option_id>")
@require_auth
@require_role("admin")
def delete_option_route(option_id: int):
    if not joint_option_service.delete_option(option_id=option_id):
        return jsonify({"error": "Joint option not found"}), 404
    return jsonify({"ok": True}), 200


@joint_builder_bp.post("/seed")
@require_auth
@require_role("admin")
def seed_options_route():
    """Create the default option catalog when it is empty."""
    return jsonify({"created": joint_option_service.seed_default_options()}), 200
