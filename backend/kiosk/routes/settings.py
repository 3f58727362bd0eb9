# Overview: Flask API routes for kiosk settings.

# backend/kiosk/routes/settings.py
from flask import Blueprint, request, jsonify, g

from ..extensions import db
from ..services import settings_service
from ..validation import ValidationError
from ..decorators import require_auth, require_role

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def list_settings_route():
    return jsonify(settings_service.list_settings()), 200


@settings_bp.get("/<key>")
@require_auth
def get_setting_route(key: str):
    if key not in settings_service.known_keys():
        return jsonify({"error": f"Unknown setting: {key}"}), 404
    return jsonify({"key": key, "value": settings_service.list_settings()[key]}), 200


@settings_bp.put("/<key>")
@require_auth
@require_role("admin")
def set_setting_route(key: str):
    """Body: {"value": ...}"""
    data = request.get_json(silent=True) or {}
    if "value" not in data:
        return jsonify({"error": "value is required"}), 400
    try:
        row = settings_service.set_setting(key, data["value"], g.current_user.id)
        db.session.commit()
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify(row.to_dict()), 200
