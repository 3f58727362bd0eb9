# backend/kiosk/routes/system.py
"""
System health and version endpoints.

Health checks report each dependency separately with its latency so a
kiosk operator can tell a broken database from an unconfigured gateway.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import KioskSession, Product, SessionToken, User
from ..services.session_machine import ACTIVE, CART_OPEN, EXPIRY_WARNING
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "users": db.session.query(User).count(),
                "products": db.session.query(Product).count(),
            },
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Database error",
        }


def check_kiosk_sessions_health() -> dict:
    """Open kiosk sessions, plus back-office sessions still valid."""
    start_time = time.time()
    try:
        open_sessions = db.session.query(KioskSession).filter(
            KioskSession.state.in_((ACTIVE, CART_OPEN, EXPIRY_WARNING))
        ).count()
        staff_sessions = db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at > utcnow(),
        ).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "open_kiosk_sessions": open_sessions,
                "staff_sessions": staff_sessions,
            },
        }
    except Exception:
        current_app.logger.exception("Session health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Session service error",
        }


def check_integrations_health() -> dict:
    """Configuration only; the gateway and POS are not called."""
    missing = []
    if not current_app.config.get("NOWPAYMENTS_API_KEY"):
        missing.append("NOWPAYMENTS_API_KEY")
    if not current_app.config.get("POS_API_URL"):
        missing.append("POS_API_URL")

    if missing:
        return {
            "status": "degraded",
            "latency_ms": 0.0,
            "warning": f"Missing configuration: {', '.join(missing)}",
        }
    return {"status": "healthy", "latency_ms": 0.0}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "sessions": check_kiosk_sessions_health(),
        "integrations": check_integrations_health(),
    }
    statuses = [c["status"] for c in checks.values()]

    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "kiosk_id": current_app.config["KIOSK_ID"],
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
