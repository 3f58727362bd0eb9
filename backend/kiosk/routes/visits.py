# Overview: Flask API routes for kiosk traffic counters.

# backend/kiosk/routes/visits.py
from flask import Blueprint, request, jsonify

from ..services import visit_service
from ..decorators import require_auth

visits_bp = Blueprint("visits", __name__, url_prefix="/api/visits")


@visits_bp.get("/today")
@require_auth
def today_route():
    return jsonify({"visits": visit_service.get_today_visits()}), 200


@visits_bp.get("/stats")
@require_auth
def stats_route():
    """?days=N (1..90, default 7)"""
    days = request.args.get("days", default=7, type=int) or 7
    days = max(1, min(days, 90))
    return jsonify(visit_service.get_visit_stats(days)), 200
