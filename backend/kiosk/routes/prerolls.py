# Overview: Flask API routes for preroll administration; qualities, strains, sizes, variant grid.

# backend/kiosk/routes/prerolls.py
import json

from flask import Blueprint, request, jsonify, current_app

from ..services import preroll_service
from ..services.preroll_service import PrerollError
from ..decorators import require_auth, require_role

prerolls_bp = Blueprint("prerolls", __name__, url_prefix="/api/prerolls")


def _error(e: PrerollError):
    return jsonify({"error": str(e), "details": e.details}), 400


@prerolls_bp.get("")
@require_auth
def catalog_route():
    """Full grid including inactive types."""
    return jsonify(preroll_service.get_catalog(active_only=False)), 200


@prerolls_bp.post("/types")
@require_auth
@require_role("admin")
def create_type_route():
    """Body: {"kind": "quality" | "strain", "type_key", "name", "color"?, "sort_order"?}"""
    data = request.get_json(silent=True) or {}
    sort_order = data.get("sort_order", 0)
    if isinstance(sort_order, bool) or not isinstance(sort_order, int):
        return jsonify({"error": "sort_order must be an integer"}), 400
    try:
        created = preroll_service.create_type(
            kind=data.get("kind") or "",
            type_key=(data.get("type_key") or "").strip(),
            name=(data.get("name") or "").strip(),
            color=data.get("color"),
            sort_order=sort_order,
        )
    except PrerollError as e:
        return _error(e)
    return jsonify(created), 201


@prerolls_bp.put("/types/<int:type_id>")
@require_auth
@require_role("admin")
def update_type_route(type_id: int):
    data = request.get_json(silent=True) or {}
    updated = preroll_service.update_type(type_id=type_id, patch=data)
    if updated is None:
        return jsonify({"error": "Preroll type not found"}), 404
    return jsonify(updated), 200


@prerolls_bp.delete("/types/<int:type_id>")
@require_auth
@require_role("admin")
def delete_type_route(type_id: int):
    """Deletes the type and every variant that uses it."""
    if not preroll_service.delete_type(type_id=type_id):
        return jsonify({"error": "Preroll type not found"}), 404
    return jsonify({"ok": True}), 200


@prerolls_bp.put("/sizes")
@require_auth
@require_role("admin")
def update_sizes_route():
    """Body: {"prices": {"small": 10000, ...}}"""
    prices = (request.get_json(silent=True) or {}).get("prices")
    if not isinstance(prices, dict):
        return jsonify({"error": "prices must be an object"}), 400
    try:
        sizes = preroll_service.update_size_prices(prices)
    except PrerollError as e:
        return _error(e)
    return jsonify({"sizes": sizes}), 200


@prerolls_bp.put("/variants/<quality>/<strain>/<size>")
@require_auth
@require_role("admin")
def upsert_variant_route(quality: str, strain: str, size: str):
    """
    JSON body or multipart with a "data" JSON field plus an "image" file.
    Fields: price_cents?, is_available?
    """
    if request.mimetype == "multipart/form-data":
        try:
            data = json.loads(request.form.get("data") or "{}")
        except ValueError:
            return jsonify({"error": "data must be a JSON object"}), 400
    else:
        data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "data must be a JSON object"}), 400

    price = data.get("price_cents")
    if price is not None and (isinstance(price, bool) or not isinstance(price, int)):
        return jsonify({"error": "price_cents must be an integer"}), 400
    image = request.files.get("image")

    try:
        variant = preroll_service.upsert_variant(
            quality=quality,
            strain=strain,
            size=size,
            price_cents=price,
            is_available=data.get("is_available"),
            image=image if image is not None and image.filename else None,
        )
    except PrerollError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to save preroll variant")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(variant), 200


@prerolls_bp.post("/seed")
@require_auth
@require_role("admin")
def seed_route():
    """?reset=true wipes existing preroll data first."""
    reset = request.args.get("reset", "").lower() == "true"
    return jsonify(preroll_service.seed_default_data(reset=reset)), 200
