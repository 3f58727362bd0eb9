# Overview: Flask API routes for the kiosk touch screen; sessions, timers, menu, cart, checkout.

# backend/kiosk/routes/kiosk.py
"""
Kiosk touch screen routes.

The kiosk holds one session token at a time and puts it in the URL:
/api/kiosk/sessions/<token>/... . Every response carries the session view
(state, seconds_remaining, cart, totals) so the screen can redraw its
timers from the server's deadline.

STATUS CODES:
- 400: domain error (bad quantity, product not available, ...)
- 404: unknown session, member, cart line or payment
- 409: event not allowed in the current state
- 410: session expired; the kiosk returns to the welcome screen
- 502: crypto gateway unreachable or rejected the request
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import cart_service, checkout_service, joint_option_service, kiosk_session_service, preroll_service
from ..services.cart_service import CartError
from ..services.checkout_service import CheckoutError
from ..services.joint_option_service import JointOptionError
from ..services.kiosk_session_service import KioskSessionError, KioskSessionNotFound
from ..services.nowpayments_client import GatewayError
from ..services.preroll_service import PrerollError
from ..services.session_machine import InvalidTransitionError, SessionExpiredError


kiosk_bp = Blueprint("kiosk", __name__, url_prefix="/api/kiosk")

DOMAIN_ERRORS = (CartError, CheckoutError, JointOptionError, KioskSessionError, PrerollError)
NOT_FOUND_MESSAGES = {"Cart item not found", "Payment not found"}


def _run(action: str, func, *args, **kwargs):
    """Call a service and map its errors to HTTP responses."""
    try:
        return jsonify(func(*args, **kwargs)), 200
    except KioskSessionNotFound as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except SessionExpiredError as e:
        return jsonify({"error": str(e), "expired": True, "reason": e.reason}), 410
    except InvalidTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except GatewayError as e:
        current_app.logger.warning("Crypto gateway error during %s: %s", action, e)
        return jsonify({"error": str(e), "details": e.details}), 502
    except DOMAIN_ERRORS as e:
        status = 404 if str(e) in NOT_FOUND_MESSAGES else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except Exception:
        current_app.logger.exception("Failed to %s", action)
        return jsonify({"error": "Internal server error"}), 500


def _payload() -> dict:
    return request.get_json(silent=True) or {}


# =============================================================================
# Session lifecycle
# =============================================================================

@kiosk_bp.post("/sessions")
def start_session_route():
    """
    Welcome screen tapped. Returns the session and its token; the token is
    not retrievable later.
    """
    data = _payload()
    try:
        view, token = kiosk_session_service.start_session(
            kiosk_id=data.get("kiosk_id"),
            language=data.get("language") or "en",
        )
    except Exception:
        current_app.logger.exception("Failed to start kiosk session")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"session": view, "token": token}), 201


@kiosk_bp.get("/sessions/<token>")
def get_session_route(token: str):
    """Poll the session. Passed deadlines are applied before responding."""
    return _run("get kiosk session", kiosk_session_service.get_session, token)


@kiosk_bp.post("/sessions/<token>/identify")
def identify_route(token: str):
    member_code = (_payload().get("member_code") or "").strip()
    if not member_code:
        return jsonify({"error": "member_code is required"}), 400
    return _run("identify member", kiosk_session_service.identify_member, token, member_code)


@kiosk_bp.post("/sessions/<token>/no-member")
def no_member_route(token: str):
    return _run("continue as no-member", kiosk_session_service.continue_as_no_member, token)


@kiosk_bp.post("/sessions/<token>/language")
def language_route(token: str):
    return _run("set language", kiosk_session_service.set_language, token, _payload().get("language") or "")


@kiosk_bp.post("/sessions/<token>/touch")
def touch_route(token: str):
    """Any tap on the screen."""
    return _run("touch kiosk session", kiosk_session_service.touch, token)


@kiosk_bp.post("/sessions/<token>/cart/open")
def open_cart_route(token: str):
    return _run("open cart", kiosk_session_service.open_cart, token)


@kiosk_bp.post("/sessions/<token>/cart/close")
def close_cart_route(token: str):
    return _run("close cart", kiosk_session_service.close_cart, token)


@kiosk_bp.post("/sessions/<token>/continue")
def continue_route(token: str):
    """'Continue' on the expiry warning."""
    return _run("continue kiosk session", kiosk_session_service.continue_session, token)


@kiosk_bp.post("/sessions/<token>/exit")
def exit_route(token: str):
    return _run("exit kiosk session", kiosk_session_service.exit_session, token)


@kiosk_bp.post("/sessions/<token>/joint-builder/enter")
def enter_joint_builder_route(token: str):
    return _run("enter joint builder", kiosk_session_service.enter_joint_builder, token)


@kiosk_bp.post("/sessions/<token>/joint-builder/leave")
def leave_joint_builder_route(token: str):
    return _run("leave joint builder", kiosk_session_service.leave_joint_builder, token)


# =============================================================================
# Menu
# =============================================================================

@kiosk_bp.get("/sessions/<token>/menu")
def menu_route(token: str):
    return _run("load menu", kiosk_session_service.menu, token)


@kiosk_bp.get("/joint-options")
def joint_options_route():
    """Active joint builder options grouped by kind."""
    return _run("load joint options", joint_option_service.kiosk_catalog)


@kiosk_bp.get("/prerolls")
def prerolls_route():
    return _run("load prerolls", preroll_service.get_catalog, active_only=True)


# =============================================================================
# Cart
# =============================================================================

@kiosk_bp.post("/sessions/<token>/cart/items")
def add_item_route(token: str):
    """
    Add a line. Body by kind:
    - product:      {"kind": "product", "product_id", "quantity"?, "selections"?}
    - custom_joint: {"kind": "custom_joint", "selection", "quantity"?}
    - preroll:      {"kind": "preroll", "quality", "strain", "size", "quantity"?}
    """
    data = _payload()
    kind = data.get("kind") or "product"
    quantity = data.get("quantity", 1)

    if kind == "product":
        product_id = data.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            return jsonify({"error": "product_id must be an integer"}), 400
        selections = data.get("selections") or {}
        if not isinstance(selections, dict):
            return jsonify({"error": "selections must be an object"}), 400
        return _run(
            "add product to cart",
            cart_service.add_product,
            token,
            product_id=product_id,
            quantity=quantity,
            selections=selections,
        )

    if kind == "custom_joint":
        selection = data.get("selection")
        if not isinstance(selection, dict):
            return jsonify({"error": "selection must be an object"}), 400
        return _run("add custom joint to cart", cart_service.add_custom_joint, token, selection=selection, quantity=quantity)

    if kind == "preroll":
        missing = [f for f in ("quality", "strain", "size") if not data.get(f)]
        if missing:
            return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
        return _run(
            "add preroll to cart",
            cart_service.add_preroll,
            token,
            quality=data["quality"],
            strain=data["strain"],
            size=data["size"],
            quantity=quantity,
        )

    return jsonify({"error": f"Unknown item kind: {kind}"}), 400


@kiosk_bp.put("/sessions/<token>/cart/items/<line_id>")
def update_item_route(token: str, line_id: str):
    quantity = _payload().get("quantity")
    return _run("update cart item", cart_service.update_quantity, token, line_id=line_id, quantity=quantity)


@kiosk_bp.delete("/sessions/<token>/cart/items/<line_id>")
def remove_item_route(token: str, line_id: str):
    return _run("remove cart item", cart_service.remove_line, token, line_id=line_id)


@kiosk_bp.delete("/sessions/<token>/cart")
def clear_cart_route(token: str):
    return _run("clear cart", cart_service.clear_cart, token)


@kiosk_bp.post("/sessions/<token>/points")
def points_route(token: str):
    """Points slider; body {"percentage": 0..100}."""
    return _run("set points usage", cart_service.set_points_percentage, token, percentage=_payload().get("percentage"))


# =============================================================================
# Checkout
# =============================================================================

@kiosk_bp.get("/sessions/<token>/payment-methods")
def payment_methods_route(token: str):
    def methods():
        session, machine = kiosk_session_service.load_session(token)
        kiosk_session_service.require_live(machine)
        return {"payment_methods": checkout_service.available_payment_methods(session)}

    return _run("load payment methods", methods)


@kiosk_bp.post("/sessions/<token>/checkout")
def checkout_route(token: str):
    """Cash or card checkout. Crypto goes through /crypto."""
    return _run("checkout", checkout_service.checkout, token, payment_method=_payload().get("payment_method"))


@kiosk_bp.post("/sessions/<token>/crypto")
def start_crypto_route(token: str):
    return _run(
        "start crypto payment",
        checkout_service.start_crypto_payment,
        token,
        pay_currency=(_payload().get("pay_currency") or "").strip(),
    )


@kiosk_bp.get("/sessions/<token>/crypto/<payment_id>")
def poll_crypto_route(token: str, payment_id: str):
    return _run("check crypto payment", checkout_service.poll_crypto_payment, token, payment_id)
