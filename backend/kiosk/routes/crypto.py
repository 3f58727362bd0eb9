# Overview: Flask API routes for crypto payments; gateway proxy, IPN callback, back-office payment list.

# backend/kiosk/routes/crypto.py
"""
Crypto payment routes.

The kiosk normally pays through /api/kiosk/sessions/<token>/crypto; these
routes expose the gateway proxy, the IPN callback the gateway posts to,
and the back-office views.

IPN: The gateway signs the JSON body with HMAC-SHA512 in the
x-nowpayments-sig header. Without a configured secret the callback only
triggers a status check against the gateway. A paid status completes the
sale here when the kiosk has stopped polling.
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import checkout_service, crypto_service
from ..services.checkout_service import CheckoutError
from ..services.crypto_service import CryptoCallbackError
from ..services.nowpayments_client import GatewayError
from ..decorators import require_auth, require_role


crypto_bp = Blueprint("crypto", __name__, url_prefix="/api/crypto")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").lower() in ("1", "true", "yes")


@crypto_bp.get("/currencies")
def currencies_route():
    try:
        return jsonify(crypto_service.get_currencies()), 200
    except GatewayError as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to fetch crypto currencies")
        return jsonify({"error": "Internal server error"}), 500


@crypto_bp.get("/min-amount")
def min_amount_route():
    try:
        data = crypto_service.get_min_amount(
            currency_from=request.args.get("currency_from") or "",
            currency_to=request.args.get("currency_to") or "trx",
            fiat_equivalent=request.args.get("fiat_equivalent") or "usd",
            is_fixed_rate=_flag("is_fixed_rate"),
            is_fee_paid_by_user=_flag("is_fee_paid_by_user"),
        )
        return jsonify(data), 200
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except GatewayError as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to fetch crypto minimum amount")
        return jsonify({"error": "Internal server error"}), 500


@crypto_bp.post("/payment")
def create_payment_route():
    """Create a gateway payment that is not tied to a kiosk session."""
    data = request.get_json(silent=True) or {}
    try:
        payment, _row = crypto_service.create_payment(
            price_amount=data.get("price_amount"),
            price_currency=data.get("price_currency") or "",
            pay_currency=data.get("pay_currency") or "",
            order_id=data.get("order_id") or "",
            order_description=data.get("order_description"),
            ipn_callback_url=data.get("ipn_callback_url"),
        )
        return jsonify(payment), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except GatewayError as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to create crypto payment")
        return jsonify({"error": "Internal server error"}), 500


@crypto_bp.get("/payment/<payment_id>")
def payment_status_route(payment_id: str):
    try:
        data, row = crypto_service.check_payment(payment_id)
        if row is not None:
            checkout_service.settle_crypto_payment(row)
        return jsonify(data), 200
    except GatewayError as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except CheckoutError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to check crypto payment")
        return jsonify({"error": "Internal server error"}), 500


@crypto_bp.post("/callback")
def ipn_callback_route():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "JSON body required"}), 400

    try:
        row = crypto_service.handle_ipn(payload, request.headers.get("x-nowpayments-sig"))
        if row is not None:
            checkout_service.settle_crypto_payment(row)
    except CryptoCallbackError as e:
        current_app.logger.warning("Rejected IPN callback: %s", e)
        return jsonify({"error": str(e)}), 400
    except GatewayError as e:
        db.session.rollback()
        current_app.logger.warning("Could not confirm IPN callback with the gateway: %s", e)
        return jsonify({"error": str(e), "details": e.details}), 502
    except CheckoutError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to process IPN callback")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"success": True}), 200


@crypto_bp.get("/payments")
@require_auth
def list_payments_route():
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    return jsonify({
        "payments": crypto_service.list_payments(status=request.args.get("status"), limit=limit),
    }), 200


@crypto_bp.post("/refresh-all")
@require_auth
@require_role("admin")
def refresh_all_route():
    """Re-check every payment still waiting, confirming or sending."""
    try:
        results = crypto_service.refresh_all(settle=checkout_service.settle_crypto_payment)
    except GatewayError as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to refresh crypto payments")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(results), 200
