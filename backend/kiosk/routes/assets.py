# Overview: Flask API routes for the kiosk asset caches.

# backend/kiosk/routes/assets.py
from flask import Blueprint, Response, request, jsonify, current_app

from ..services import asset_cache
from ..services.asset_cache import CACHE_CONTENT_TYPES, AssetCacheError
from ..decorators import require_auth, require_role

assets_bp = Blueprint("assets", __name__, url_prefix="/api/assets")


@assets_bp.get("/manifest")
def manifest_route():
    return jsonify(asset_cache.menu_manifest()), 200


@assets_bp.get("/<cache_name>")
def get_asset_route(cache_name: str):
    """
    ?url=<remote url>. Serves the cached copy, downloading it on a miss.
    502 when the download fails; the kiosk then loads the remote URL itself.
    """
    if cache_name not in CACHE_CONTENT_TYPES:
        return jsonify({"error": f"Unknown asset cache: {cache_name}"}), 404
    url = request.args.get("url") or ""
    try:
        found = asset_cache.get_cache(cache_name).get_or_fetch(url)
    except AssetCacheError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except OSError:
        current_app.logger.exception("Failed to read asset cache")
        return jsonify({"error": "Internal server error"}), 500

    if found is None:
        return jsonify({"error": "Asset unavailable", "url": url}), 502
    content, meta = found
    response = Response(content, mimetype=meta["content_type"])
    response.headers["X-Asset-Cache-Key"] = meta["key"]
    return response


@assets_bp.get("/stats")
@require_auth
def stats_route():
    return jsonify(asset_cache.all_stats()), 200


@assets_bp.post("/preload")
@require_auth
@require_role("admin")
def preload_route():
    return jsonify(asset_cache.preload_menu()), 200


@assets_bp.delete("/<cache_name>")
@require_auth
@require_role("admin")
def clear_route(cache_name: str):
    if cache_name not in CACHE_CONTENT_TYPES:
        return jsonify({"error": f"Unknown asset cache: {cache_name}"}), 404
    return jsonify({"removed": asset_cache.get_cache(cache_name).clear()}), 200
