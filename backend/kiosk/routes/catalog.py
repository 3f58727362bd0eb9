# Overview: Flask API routes for catalog administration; categories, subcategories, products, images.

# backend/kiosk/routes/catalog.py
"""
Catalog administration routes.

Writes accept either a JSON body or multipart/form-data. Multipart
requests carry the JSON fields in a "data" form field next to the files
(image, background_image).

SECURITY: Reads require a staff session, writes require the admin role.
"""
import json

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Category, Product, Subcategory
from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    check_category,
    check_product,
    ValidationError,
)
from ..decorators import require_auth, require_role

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "special_page", "text_color", "background_fit", "is_active"},
    required_on_create={"name"},
    rules=(check_category,),
)

SUBCATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "name", "description", "text_color", "sort_order", "is_active"},
    required_on_create={"category_id", "name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(catalog_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"name", "category_id", "price_cents"},
    rules=(check_product,),
)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _read_payload() -> dict:
    if request.mimetype == "multipart/form-data":
        raw = request.form.get("data") or "{}"
        try:
            payload = json.loads(raw)
        except ValueError:
            raise ValidationError("data must be a JSON object")
        if not isinstance(payload, dict):
            raise ValidationError("data must be a JSON object")
        return payload
    return request.get_json(silent=True) or {}


def _file(name: str):
    f = request.files.get(name)
    if f is None or not f.filename:
        return None
    return f


def _flag(name: str) -> bool:
    return (request.form.get(name) or request.args.get(name) or "").lower() in ("1", "true", "yes")


# =============================================================================
# Categories
# =============================================================================

@catalog_bp.get("/categories")
@require_auth
def list_categories_route():
    active_only = request.args.get("active_only", "").lower() == "true"
    return jsonify({"categories": catalog_service.list_categories(active_only=active_only)}), 200


@catalog_bp.post("/categories")
@require_auth
@require_role("admin")
def create_category_route():
    try:
        patch = validate_payload(model=Category, payload=_read_payload(), policy=CATEGORY_POLICY, partial=False)
        created = catalog_service.create_category(
            patch=patch, image=_file("image"), background_image=_file("background_image")
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(created), 201


@catalog_bp.put("/categories/<int:category_id>")
@require_auth
@require_role("admin")
def update_category_route(category_id: int):
    try:
        patch = validate_payload(model=Category, payload=_read_payload(), policy=CATEGORY_POLICY, partial=True)
        updated = catalog_service.update_category(
            category_id=category_id,
            patch=patch,
            image=_file("image"),
            background_image=_file("background_image"),
            remove_image=_flag("remove_image"),
            remove_background=_flag("remove_background"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500

    if updated is None:
        return jsonify({"error": "Category not found"}), 404
    return jsonify(updated), 200


@catalog_bp.delete("/categories/<int:category_id>")
@require_auth
@require_role("admin")
def delete_category_route(category_id: int):
    try:
        deleted = catalog_service.delete_category(category_id=category_id)
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 409

    if not deleted:
        return jsonify({"error": "Category not found"}), 404
    return jsonify({"ok": True}), 200


@catalog_bp.put("/categories/order")
@require_auth
@require_role("admin")
def save_category_order_route():
    """Body: {"order": [category ids]}"""
    data = request.get_json(silent=True) or {}
    try:
        order = catalog_service.save_category_order(data.get("order"), user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"order": order}), 200


# =============================================================================
# Subcategories
# =============================================================================

@catalog_bp.get("/subcategories")
@require_auth
def list_subcategories_route():
    category_id = request.args.get("category_id", type=int)
    return jsonify({"subcategories": catalog_service.list_subcategories(category_id=category_id)}), 200


@catalog_bp.post("/subcategories")
@require_auth
@require_role("admin")
def create_subcategory_route():
    try:
        patch = validate_payload(model=Subcategory, payload=_read_payload(), policy=SUBCATEGORY_POLICY, partial=False)
        created = catalog_service.create_subcategory(patch=patch, image=_file("image"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create subcategory")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(created), 201


@catalog_bp.put("/subcategories/<int:subcategory_id>")
@require_auth
@require_role("admin")
def update_subcategory_route(subcategory_id: int):
    try:
        patch = validate_payload(model=Subcategory, payload=_read_payload(), policy=SUBCATEGORY_POLICY, partial=True)
        updated = catalog_service.update_subcategory(subcategory_id=subcategory_id, patch=patch, image=_file("image"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update subcategory")
        return jsonify({"error": "Internal server error"}), 500

    if updated is None:
        return jsonify({"error": "Subcategory not found"}), 404
    return jsonify(updated), 200


@catalog_bp.delete("/subcategories/<int:subcategory_id>")
@require_auth
@require_role("admin")
def delete_subcategory_route(subcategory_id: int):
    try:
        deleted = catalog_service.delete_subcategory(subcategory_id=subcategory_id)
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 409

    if not deleted:
        return jsonify({"error": "Subcategory not found"}), 404
    return jsonify({"ok": True}), 200


# =============================================================================
# Products
# =============================================================================

@catalog_bp.get("/products")
@require_auth
def list_products_route():
    """
    Query params:
    - category_id, subcategory_id: int (optional)
    - active_only: "true" (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    result = catalog_service.list_products(
        category_id=request.args.get("category_id", type=int),
        subcategory_id=request.args.get("subcategory_id", type=int),
        active_only=request.args.get("active_only", "").lower() == "true",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@catalog_bp.get("/products/stats")
@require_auth
def product_stats_route():
    return jsonify(catalog_service.product_stats()), 200


@catalog_bp.get("/products/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    product = catalog_service.get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@catalog_bp.post("/products")
@require_auth
@require_role("admin")
def create_product_route():
    try:
        patch = validate_payload(model=Product, payload=_read_payload(), policy=PRODUCT_POLICY, partial=False)
        created = catalog_service.create_product(patch=patch, image=_file("image"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(created), 201


@catalog_bp.put("/products/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    try:
        patch = validate_payload(model=Product, payload=_read_payload(), policy=PRODUCT_POLICY, partial=True)
        updated = catalog_service.update_product(product_id=product_id, patch=patch, image=_file("image"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    if updated is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(updated), 200


@catalog_bp.delete("/products/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    if not catalog_service.delete_product(product_id=product_id):
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"ok": True}), 200
