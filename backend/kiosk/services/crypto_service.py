# Overview: Service-layer operations for crypto payments; gateway proxy, stored payment rows, IPN callbacks, bulk refresh.

"""
Crypto Payment Service

Every payment created through the gateway is stored in crypto_payments with
the priced order it pays for. Status changes arrive three ways: the kiosk's
status poll, the gateway's IPN callback, and the bulk refresh of payments
still in flight (waiting, confirming, sending). All three go through
apply_status().
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import CryptoPayment
from .concurrency import lock_for_update
from .nowpayments_client import ACTIVE_STATUSES, GatewayError, NowPaymentsClient, verify_ipn_signature


class CryptoCallbackError(Exception):
    """Raised when an IPN callback is rejected."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


STATUS_FIELDS = ("pay_address", "pay_amount", "actually_paid")


def gateway() -> NowPaymentsClient:
    return NowPaymentsClient.from_config(current_app.config)


def get_currencies() -> dict:
    return gateway().get_currencies()


def get_min_amount(**kwargs) -> dict:
    return gateway().get_min_amount(**kwargs)


def get_payment_row(payment_id) -> CryptoPayment | None:
    return db.session.query(CryptoPayment).filter_by(payment_id=str(payment_id)).first()


def list_payments(*, status: str | None = None, limit: int = 100) -> list[dict]:
    query = db.session.query(CryptoPayment)
    if status:
        query = query.filter(CryptoPayment.payment_status == status)
    rows = query.order_by(CryptoPayment.created_at.desc(), CryptoPayment.id.desc()).limit(limit).all()
    return [r.to_dict() for r in rows]


def create_payment(
    *,
    price_amount,
    price_currency: str,
    pay_currency: str,
    order_id: str,
    order_description: str | None = None,
    ipn_callback_url: str | None = None,
    session_id: int | None = None,
    order_snapshot: dict | None = None,
) -> tuple[dict, CryptoPayment]:
    """Create the gateway payment and store it. Returns (gateway data, row)."""
    data = gateway().create_payment(
        price_amount=price_amount,
        price_currency=price_currency,
        pay_currency=pay_currency,
        order_id=order_id,
        order_description=order_description,
        ipn_callback_url=ipn_callback_url or current_app.config.get("CRYPTO_IPN_CALLBACK_URL") or None,
    )
    if not data.get("payment_id"):
        raise GatewayError("Failed to create payment", details={"cause": "missing payment_id"})

    row = CryptoPayment(
        payment_id=str(data["payment_id"]),
        order_id=str(data.get("order_id") or order_id),
        session_id=session_id,
        payment_status=data.get("payment_status") or "waiting",
        pay_address=data.get("pay_address"),
        pay_amount=_as_str(data.get("pay_amount")),
        pay_currency=data.get("pay_currency") or pay_currency,
        price_amount=_as_str(data.get("price_amount", price_amount)),
        price_currency=data.get("price_currency") or price_currency,
        raw=data,
        order_snapshot=order_snapshot,
    )
    db.session.add(row)
    db.session.commit()
    current_app.logger.info("Created crypto payment %s for order %s", row.payment_id, row.order_id)
    return data, row


def _as_str(value) -> str | None:
    if value is None:
        return None
    return str(value)


def apply_status(row: CryptoPayment, data: dict) -> bool:
    """Copy gateway status fields onto the row. Returns True when status changed. Caller commits."""
    changed = bool(data.get("payment_status")) and data["payment_status"] != row.payment_status
    if data.get("payment_status"):
        row.payment_status = data["payment_status"]
    for field in STATUS_FIELDS:
        if data.get(field) is not None:
            setattr(row, field, _as_str(data[field]))
    row.raw = {**(row.raw or {}), **data}
    return changed


def check_payment(payment_id) -> tuple[dict, CryptoPayment | None]:
    """Fetch status from the gateway and update the stored row when there is one."""
    data = gateway().get_payment(payment_id)
    row = get_payment_row(payment_id)
    if row is None:
        current_app.logger.warning("Crypto payment %s not found locally", payment_id)
        return data, None
    apply_status(row, data)
    db.session.commit()
    return data, row


def handle_ipn(payload: dict, signature: str | None) -> CryptoPayment | None:
    """
    Apply a gateway IPN callback.

    With NOWPAYMENTS_IPN_SECRET set, the signature is required and the
    payload is applied as sent. Without a secret the payload cannot be
    trusted: it only names the payment, whose status is then fetched from
    the gateway.
    """
    secret = current_app.config.get("NOWPAYMENTS_IPN_SECRET")
    if secret and not verify_ipn_signature(payload, signature, secret):
        raise CryptoCallbackError("Invalid IPN signature")

    payment_id = payload.get("payment_id")
    if not payment_id:
        raise CryptoCallbackError("payment_id is required")

    row = lock_for_update(db.session.query(CryptoPayment).filter_by(payment_id=str(payment_id))).first()
    if row is None:
        current_app.logger.warning("IPN for unknown crypto payment %s", payment_id)
        return None

    if secret:
        data = payload
    else:
        current_app.logger.info("Unsigned IPN for crypto payment %s, checking the gateway", payment_id)
        data = gateway().get_payment(row.payment_id)
    apply_status(row, data)
    db.session.commit()
    return row


def refresh_all(*, settle=None) -> dict:
    """
    Re-check every payment still in flight. `settle(row)` is called for each
    row whose status changed.
    """
    rows = (
        db.session.query(CryptoPayment)
        .filter(CryptoPayment.payment_status.in_(ACTIVE_STATUSES))
        .order_by(CryptoPayment.id.asc())
        .all()
    )
    results = {"total": len(rows), "updated": 0, "errors": 0, "skipped": 0}
    client = gateway()

    for row in rows:
        try:
            data = client.get_payment(row.payment_id)
        except GatewayError as exc:
            current_app.logger.warning("Failed to check crypto payment %s: %s", row.payment_id, exc)
            results["errors"] += 1
            continue

        if apply_status(row, data):
            db.session.commit()
            results["updated"] += 1
            if settle is not None:
                settle(row)
        else:
            db.session.rollback()
            results["skipped"] += 1

    current_app.logger.info("Crypto payment refresh: %s", results)
    return results
