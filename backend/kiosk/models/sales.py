from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z


class Transaction(db.Model):
    """
    Completed kiosk order.

    WHY: The transaction is the durable record of a sale. It is written once
    at checkout; the only later mutation is the status flip on refund.

    IDENTIFIERS:
    - transaction_code: "<prefix>-00001" from the transaction counter
    - order_number: short number printed on the receipt for pickup

    ITEMS: Snapshot of the cart lines at checkout (JSON), so later catalog
    edits never change historical orders.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_code", name="uq_transactions_code"),
        db.Index("ix_transactions_customer_created", "customer_id", "created_at"),
        db.Index("ix_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_code = db.Column(db.String(64), nullable=False)
    order_number = db.Column(db.String(32), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False, default="No Member")

    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="")  # cash, card, crypto, or ""
    payment_status = db.Column(db.String(16), nullable=False, default="completed")
    transaction_type = db.Column(db.String(16), nullable=False, default="sale")  # sale, refund
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)  # completed, refunded, cancelled

    cashier = db.Column(db.String(64), nullable=False, default="kiosk")
    location = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    refund_reason = db.Column(db.Text, nullable=True)

    # Loyalty
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    cashback_earned_cents = db.Column(db.Integer, nullable=False, default=0)
    point_details = db.Column(db.JSON, nullable=True)
    points_used = db.Column(db.Integer, nullable=False, default=0)
    points_used_value_cents = db.Column(db.Integer, nullable=False, default=0)
    points_usage_percentage = db.Column(db.Integer, nullable=False, default=0)

    crypto_details = db.Column(db.JSON, nullable=True)
    original_transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    original_transaction = db.relationship("Transaction", remote_side=[id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_code": self.transaction_code,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "items": self.items or [],
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "transaction_type": self.transaction_type,
            "status": self.status,
            "cashier": self.cashier,
            "location": self.location,
            "notes": self.notes,
            "refund_reason": self.refund_reason,
            "points_earned": self.points_earned,
            "cashback_earned_cents": self.cashback_earned_cents,
            "point_details": self.point_details,
            "points_used": self.points_used,
            "points_used_value_cents": self.points_used_value_cents,
            "points_usage_percentage": self.points_usage_percentage,
            "crypto_details": self.crypto_details,
            "original_transaction_id": self.original_transaction_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Counter(db.Model):
    """
    Atomic named sequences.

    WHY: Prevent race conditions when generating human-readable codes
    (transactions, categories, products, customers). Each counter name
    (e.g., "transaction_TRX") owns one row.
    """
    __tablename__ = "counters"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_counters_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class CryptoPayment(db.Model):
    """
    Crypto payment created through the NOWPayments gateway.

    LIFECYCLE (gateway statuses):
    waiting -> confirming -> confirmed -> sending -> finished
    Terminal: finished, failed, refunded, expired

    WHY: Kept separately from the transaction so the kiosk can poll the
    gateway, and the IPN callback can update status, before the sale exists.
    transaction_id is set exactly once when the sale is completed.
    """
    __tablename__ = "crypto_payments"
    __table_args__ = (
        db.UniqueConstraint("payment_id", name="uq_crypto_payments_payment_id"),
        db.Index("ix_crypto_payments_status", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.String(64), nullable=False)
    order_id = db.Column(db.String(64), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("kiosk_sessions.id"), nullable=True, index=True)

    payment_status = db.Column(db.String(16), nullable=False, default="waiting")
    pay_address = db.Column(db.String(255), nullable=True)
    pay_amount = db.Column(db.String(64), nullable=True)  # Decimal string from the gateway
    pay_currency = db.Column(db.String(16), nullable=False)
    price_amount = db.Column(db.String(64), nullable=False)
    price_currency = db.Column(db.String(16), nullable=False)
    actually_paid = db.Column(db.String(64), nullable=True)
    raw = db.Column(db.JSON, nullable=True)

    # Priced order captured when the payment was created; the sale is built from it
    order_snapshot = db.Column(db.JSON, nullable=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    transaction = db.relationship("Transaction", backref=db.backref("crypto_payment", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "order_id": self.order_id,
            "session_id": self.session_id,
            "payment_status": self.payment_status,
            "pay_address": self.pay_address,
            "pay_amount": self.pay_amount,
            "pay_currency": self.pay_currency,
            "price_amount": self.price_amount,
            "price_currency": self.price_currency,
            "actually_paid": self.actually_paid,
            "transaction_id": self.transaction_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
