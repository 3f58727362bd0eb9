# Overview: Service-layer orchestration of kiosk checkout; cash/card sales, crypto payments, best-effort side effects.

"""
Checkout Service

ORDER OF OPERATIONS (cash / card, and crypto once paid):
1. Validate: live session, identified customer, non-empty cart, payment
   method available, enough points for the redemption
2. Write the Transaction (the only step that can fail the checkout)
3. Best-effort, each caught and logged on its own:
   - deduct redeemed points from the member's ledger
   - "sales" stock movements for catalog products
   - pending points for earned cashback (members only)
   - customer spend totals
   - submit the order to the POS
4. End the session (reason "checkout"), which clears the cart

A failure before step 2 completes leaves the cart untouched. Side effects
that fail after step 2 are never rolled back; the sale stands.

CRYPTO: The priced order is snapshotted on the crypto_payments row when the
gateway payment is created. The sale is written from that snapshot when
the payment reaches "finished" or "confirmed", exactly once, whichever of
poll, IPN callback or bulk refresh sees it first.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import CryptoPayment, Customer, KioskSession, Transaction
from ..time_utils import utcnow
from . import crypto_service, customer_service, pending_points_service, settings_service, stock_service
from .cart_service import cart_totals
from .concurrency import lock_for_update
from .customer_service import PointsError
from .kiosk_session_service import (
    customer_name,
    is_member,
    load_session,
    machine_for,
    require_customer,
    require_live,
    save_machine,
    session_view,
    wall_clock,
)
from .nowpayments_client import PAID_STATUSES, is_terminal
from .pending_points_service import PendingPointsError
from .pos_client import PosApiClient, PosApiError
from .stock_service import StockError
from .transaction_service import TransactionError, create_transaction


class CheckoutError(Exception):
    """Raised when a checkout cannot proceed."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


RECEIPT_RESET_SECONDS = 60
KIOSK_CREATED_BY = "kiosk-system"


# =============================================================================
# Payment methods
# =============================================================================

def available_payment_methods(session: KioskSession) -> dict[str, bool]:
    if is_member(session):
        return {m: True for m in settings_service.PAYMENT_METHODS}
    return settings_service.get_non_member_payment_methods()


def _resolve_payment_method(session: KioskSession, payment_method: str | None) -> str:
    methods = available_payment_methods(session)
    if not any(methods.values()):
        return ""
    if not payment_method:
        raise CheckoutError("Please select a payment method")
    if not methods.get(payment_method):
        raise CheckoutError("Payment method not available", details={"payment_method": payment_method})
    return payment_method


# =============================================================================
# Order snapshot
# =============================================================================

def build_order(session: KioskSession, payment_method: str) -> dict:
    """Priced, self-contained order built from the session cart."""
    lines = list(session.cart or [])
    if not lines:
        raise CheckoutError("Cart is empty")

    totals = cart_totals(session)
    member = is_member(session)
    if member and totals["points_to_use"] > totals["points_balance"]:
        raise CheckoutError("Insufficient points")

    return {
        "session_id": session.id,
        "kiosk_id": session.kiosk_id,
        "customer_id": session.customer_id,
        "customer_name": customer_name(session),
        "is_no_member": not member,
        "payment_method": payment_method,
        "items": lines,
        "subtotal_cents": totals["subtotal_cents"],
        "total_cents": totals["total_cents"],
        "points_to_use": totals["points_to_use"],
        "points_value_cents": totals["points_value_cents"],
        "points_usage_percentage": totals["points_usage_percentage"],
        "cashback_cents": totals["cashback_cents"],
        "cashback_points": totals["cashback_points"],
        "cashback_breakdown": totals["cashback_breakdown"],
    }


def pos_order_payload(tx: Transaction, order: dict, customer: Customer | None) -> dict:
    """Order as the POS API expects it (amounts in baht)."""
    def baht(cents) -> float:
        return round((cents or 0) / 100, 2)

    crypto = tx.crypto_details or None
    return {
        "transactionId": tx.transaction_code,
        "orderNumber": tx.order_number,
        "kioskId": order.get("kiosk_id") or current_app.config["KIOSK_ID"],
        "customer": {
            "id": customer.id if customer else None,
            "customerId": customer.customer_code if customer else None,
            "name": customer.name if customer else "",
            "lastName": (customer.last_name or "") if customer else "",
            "fullName": order["customer_name"],
            "email": (customer.email or "") if customer else "",
            "phone": (customer.cell or "") if customer else "",
            "isNoMember": customer is None,
        },
        "items": [
            {
                "id": item.get("line_id"),
                "productId": item.get("product_id"),
                "posItemId": item.get("pos_item_id"),
                "name": item.get("name"),
                "variantName": item.get("variant_name") or "",
                "price": baht(item.get("unit_price_cents")),
                "quantity": item.get("quantity"),
                "image": item.get("image"),
                "categoryId": item.get("category_id"),
                "subtotal": baht(int(item.get("unit_price_cents") or 0) * int(item.get("quantity") or 0)),
                "details": item.get("details") or [],
            }
            for item in order["items"]
        ],
        "pricing": {
            "subtotal": baht(order["subtotal_cents"]),
            "tax": 0,
            "discount": 0,
            "pointsUsed": order["points_to_use"],
            "pointsUsedValue": baht(order["points_value_cents"]),
            "total": baht(order["total_cents"]),
        },
        "payment": {
            "method": order["payment_method"],
            "status": "completed",
            "cryptoDetails": {
                "currency": crypto.get("pay_currency"),
                "paymentId": crypto.get("payment_id"),
                "amount": crypto.get("price_amount"),
                "amountInCrypto": crypto.get("pay_amount"),
                "address": crypto.get("pay_address"),
            } if crypto else None,
        },
        "points": {
            "earned": order["cashback_points"],
            "used": order["points_to_use"],
            "usedValue": baht(order["points_value_cents"]),
            "usagePercentage": order["points_usage_percentage"],
            "details": order["cashback_breakdown"],
        },
        "metadata": {
            "source": "kiosk",
            "kioskId": order.get("kiosk_id") or current_app.config["KIOSK_ID"],
            "kioskLocation": current_app.config["KIOSK_LOCATION"],
            "orderCompletedAt": tx.created_at.isoformat() if tx.created_at else utcnow().isoformat(),
            "requiresConfirmation": True,
            "notes": "",
        },
    }


# =============================================================================
# Sale
# =============================================================================

def complete_sale(
    order: dict,
    *,
    crypto_details: dict | None = None,
    crypto_payment: CryptoPayment | None = None,
) -> tuple[Transaction, dict]:
    """
    Write the transaction, then run the best-effort side effects.

    Returns (transaction, side effect report). Raises CheckoutError when the
    transaction itself cannot be written.
    """
    customer_id = order.get("customer_id")
    try:
        tx = create_transaction(
            items=order["items"],
            subtotal_cents=order["subtotal_cents"],
            total_cents=order["total_cents"],
            payment_method=order["payment_method"],
            customer_id=customer_id,
            customer_name=order["customer_name"],
            discount_cents=order["points_value_cents"],
            location=current_app.config["KIOSK_LOCATION"],
            cashier="kiosk",
            points_earned=order["cashback_points"],
            cashback_earned_cents=order["cashback_cents"],
            point_details={"breakdown": order["cashback_breakdown"]},
            points_used=order["points_to_use"],
            points_used_value_cents=order["points_value_cents"],
            points_usage_percentage=order["points_usage_percentage"],
            crypto_details=crypto_details,
            commit=False,
        )
        if crypto_payment is not None:
            crypto_payment.transaction_id = tx.id
        db.session.commit()
    except (SQLAlchemyError, TransactionError) as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to write kiosk transaction")
        raise CheckoutError("Failed to save the order") from exc

    current_app.logger.info("Kiosk sale %s written (%s cents)", tx.transaction_code, tx.total_cents)
    report = {
        "points_redeemed": False,
        "stock_recorded": False,
        "pending_points_id": None,
        "pos_submitted": False,
    }

    # Redeemed points
    if customer_id and order["points_to_use"] > 0:
        try:
            customer_service.subtract_points(
                customer_id,
                order["points_to_use"],
                reason="Points Used - Order Purchase",
                transaction_code=tx.transaction_code,
                payment_method=order["payment_method"],
                purchase_amount_cents=order["subtotal_cents"],
                details={
                    "percentage": order["points_usage_percentage"],
                    "value_cents": order["points_value_cents"],
                },
            )
            report["points_redeemed"] = True
        except (PointsError, SQLAlchemyError):
            db.session.rollback()
            current_app.logger.exception("Failed to deduct redeemed points for %s", tx.transaction_code)

    # Stock
    try:
        stock_service.record_sale_movements(
            transaction_code=tx.transaction_code, lines=order["items"], created_by=KIOSK_CREATED_BY
        )
        db.session.commit()
        report["stock_recorded"] = True
    except (StockError, SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Failed to record stock movements for %s", tx.transaction_code)

    # Cashback
    if customer_id and order["cashback_points"] > 0:
        try:
            entry = pending_points_service.create_pending_points(
                customer_id=customer_id,
                points_amount=order["cashback_points"],
                transaction_code=tx.transaction_code,
                reason="Purchase Cashback",
                details={
                    "breakdown": order["cashback_breakdown"],
                    "purchase_amount_cents": order["subtotal_cents"],
                    "payment_method": order["payment_method"],
                },
                source="kiosk",
            )
            report["pending_points_id"] = entry.id
        except (PendingPointsError, SQLAlchemyError):
            db.session.rollback()
            current_app.logger.exception("Failed to create pending points for %s", tx.transaction_code)

    customer = db.session.get(Customer, customer_id) if customer_id else None

    # Customer totals
    if customer is not None:
        try:
            customer.total_spent_cents = (customer.total_spent_cents or 0) + tx.total_cents
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to update spend totals for customer %s", customer_id)

    # POS
    try:
        PosApiClient.from_config(current_app.config).submit_order(pos_order_payload(tx, order, customer))
        report["pos_submitted"] = True
    except PosApiError as exc:
        current_app.logger.warning("Failed to send order %s to POS: %s", tx.transaction_code, exc)

    return tx, report


def _end_session(session: KioskSession, machine, tx: Transaction, now: float | None) -> None:
    session.last_transaction_code = tx.transaction_code
    if not machine.is_expired:
        machine.complete(now)
    save_machine(session, machine)
    db.session.commit()


def checkout(token: str, *, payment_method: str | None = None, now: float | None = None) -> dict:
    """Cash / card (or no payment method) checkout."""
    session, machine = load_session(token, now)
    require_live(machine)
    require_customer(session)

    if payment_method == "crypto":
        raise CheckoutError("Crypto payments use the crypto payment flow")
    method = _resolve_payment_method(session, payment_method)
    order = build_order(session, method)

    tx, report = complete_sale(order)

    session, machine = load_session(token, now)
    _end_session(session, machine, tx, now)
    return {
        "transaction": tx.to_dict(),
        "side_effects": report,
        "reset_after_seconds": RECEIPT_RESET_SECONDS,
        "session": session_view(session, machine, now),
    }


# =============================================================================
# Crypto
# =============================================================================

def start_crypto_payment(token: str, *, pay_currency: str, now: float | None = None) -> dict:
    """Create a gateway payment for the cart total (after points), priced in USD."""
    session, machine = load_session(token, now)
    require_live(machine)
    require_customer(session)

    if not pay_currency:
        raise CheckoutError("pay_currency is required")
    method = _resolve_payment_method(session, "crypto")
    order = build_order(session, method)
    if order["total_cents"] <= 0:
        raise CheckoutError("Nothing to pay; use another payment method")

    rate = settings_service.get_baht_to_usd_rate()
    price_usd = round(order["total_cents"] / 100 * rate, 2)
    order_id = f"CK-{int(wall_clock() * 1000)}"

    data, row = crypto_service.create_payment(
        price_amount=price_usd,
        price_currency="usd",
        pay_currency=pay_currency.lower(),
        order_id=order_id,
        order_description=f"Kiosk order - {len(order['items'])} items",
        session_id=session.id,
        order_snapshot=order,
    )

    session.payment_method = "crypto"
    machine.touch(now)
    save_machine(session, machine)
    db.session.commit()

    return {
        "payment": data,
        "crypto_payment": row.to_dict(),
        "total_baht": order["total_cents"] / 100,
        "price_usd": price_usd,
        "poll_interval_seconds": current_app.config["CRYPTO_POLL_INTERVAL_SECONDS"],
    }


def settle_crypto_payment(row: CryptoPayment, now: float | None = None) -> Transaction | None:
    """
    Write the sale for a paid crypto payment, at most once.

    Returns the transaction (new or existing), or None when not paid.
    """
    row = lock_for_update(db.session.query(CryptoPayment).filter_by(id=row.id)).first()
    if row is None or row.payment_status not in PAID_STATUSES:
        return None
    if row.transaction_id is not None:
        return db.session.get(Transaction, row.transaction_id)
    if not row.order_snapshot:
        current_app.logger.warning("Paid crypto payment %s has no order snapshot", row.payment_id)
        return None

    tx, _report = complete_sale(
        row.order_snapshot,
        crypto_payment=row,
        crypto_details={
            "payment_id": row.payment_id,
            "order_id": row.order_id,
            "pay_currency": row.pay_currency,
            "pay_amount": row.pay_amount,
            "pay_address": row.pay_address,
            "price_amount": row.price_amount,
            "price_currency": row.price_currency,
            "actually_paid": row.actually_paid,
            "payment_status": row.payment_status,
        },
    )

    if row.session_id is not None:
        session = db.session.get(KioskSession, row.session_id)
        if session is not None:
            machine = machine_for(session)
            machine.poll(now)
            _end_session(session, machine, tx, now)
    return tx


def poll_crypto_payment(token: str, payment_id: str, now: float | None = None) -> dict:
    """
    Kiosk status poll. Keeps the session alive while the payment screen is
    open and completes the sale once the payment is paid.
    """
    session, machine = load_session(token, now)
    row = crypto_service.get_payment_row(payment_id)
    if row is None or row.session_id != session.id:
        raise CheckoutError("Payment not found", details={"payment_id": payment_id})

    data, row = crypto_service.check_payment(payment_id)
    status = row.payment_status
    tx = settle_crypto_payment(row, now)

    session, machine = load_session(token, now)
    if tx is None and not machine.is_expired:
        if is_terminal(status):
            session.payment_method = None
        machine.touch(now)
        save_machine(session, machine)
        db.session.commit()

    return {
        "payment_status": status,
        "payment": data,
        "poll_again": not is_terminal(status) and tx is None,
        "poll_interval_seconds": current_app.config["CRYPTO_POLL_INTERVAL_SECONDS"],
        "transaction": tx.to_dict() if tx is not None else None,
        "reset_after_seconds": RECEIPT_RESET_SECONDS if tx is not None else None,
        "session": session_view(session, machine, now),
    }
