# Overview: Flask API routes for back-office auth and user administration.

# backend/kiosk/routes/auth.py
"""
Back-office authentication.

Kiosks never log in; these routes serve the staff dashboard. Users are
created by an admin (POST /api/auth/users) or with `flask users create`.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..decorators import require_auth, require_role


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """Self-registration is disabled."""
    return jsonify({
        "error": "Self-registration is disabled. Contact an administrator to create an account."
    }), 403


@auth_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email") or data.get("identifier")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed login for %s", username)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not session_service.revoke_session(token):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


# =============================================================================
# User administration (admin only)
# =============================================================================

@auth_bp.get("/users")
@require_auth
@require_role("admin")
def list_users_route():
    return jsonify({"users": auth_service.list_users()}), 200


@auth_bp.post("/users")
@require_auth
@require_role("admin")
def create_user_route():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    role = data.get("role") or "staff"

    if not all([username, email, password]):
        return jsonify({"error": "username, email and password are required"}), 400

    try:
        user = auth_service.create_user(username, email, password, role=role)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_role("admin")
def deactivate_user_route(user_id: int):
    if user_id == g.current_user.id:
        return jsonify({"error": "You cannot deactivate your own account"}), 400

    user = auth_service.set_active(user_id, False)
    if user is None:
        return jsonify({"error": "User not found"}), 404

    revoked = session_service.revoke_all_user_sessions(user_id)
    return jsonify({"user": user.to_dict(), "sessions_revoked": revoked}), 200


@auth_bp.post("/users/<int:user_id>/activate")
@require_auth
@require_role("admin")
def activate_user_route(user_id: int):
    user = auth_service.set_active(user_id, True)
    if user is None:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": user.to_dict()}), 200
