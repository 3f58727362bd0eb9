# Overview: Service-layer operations for transactions; sequential codes, order records, refunds, stats.

"""
Transaction Service

IDENTIFIERS: Transaction codes are "<prefix>-NNNNN". The prefix comes from
the transaction_prefix setting (default "TRX") and each prefix has its own
counter row ("transaction_<prefix>"), so changing the prefix starts a new
sequence without reusing codes.

IMMUTABILITY: A transaction is written once. Refunds append a new
"refund" transaction referencing the original and flip the original's
status to "refunded"; nothing else is ever updated.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Transaction
from . import settings_service
from .concurrency import lock_for_update
from .sequence_service import next_counter_value


class TransactionError(Exception):
    """Raised for transaction operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


TRANSACTION_CODE_PAD = 5

ITEM_SNAPSHOT_FIELDS = (
    "line_id", "kind", "product_id", "category_id", "name", "unit_price_cents", "quantity",
    "image", "variant_selections", "variant_name", "details", "cashback",
)


def generate_transaction_code() -> str:
    prefix = settings_service.get_transaction_prefix()
    number = next_counter_value(f"transaction_{prefix}")
    return f"{prefix}-{number:0{TRANSACTION_CODE_PAD}d}"


def clean_items(lines: list[dict]) -> list[dict]:
    """Snapshot cart lines with a fixed set of keys and explicit defaults."""
    cleaned = []
    for line in lines or []:
        item = {k: line.get(k) for k in ITEM_SNAPSHOT_FIELDS}
        item["unit_price_cents"] = int(item["unit_price_cents"] or 0)
        item["quantity"] = int(item["quantity"] or 0)
        item["line_total_cents"] = item["unit_price_cents"] * item["quantity"]
        item["name"] = item["name"] or ""
        if line.get("joint_config"):
            item["joint_config"] = line["joint_config"]
        if line.get("preroll"):
            item["preroll"] = line["preroll"]
        cleaned.append(item)
    return cleaned


def create_transaction(
    *,
    items: list[dict],
    subtotal_cents: int,
    total_cents: int,
    payment_method: str,
    customer_id: int | None = None,
    customer_name: str | None = None,
    tax_cents: int = 0,
    discount_cents: int = 0,
    payment_status: str = "completed",
    location: str | None = None,
    notes: str | None = None,
    cashier: str = "kiosk",
    points_earned: int = 0,
    cashback_earned_cents: int = 0,
    point_details: dict | None = None,
    points_used: int = 0,
    points_used_value_cents: int = 0,
    points_usage_percentage: int = 0,
    crypto_details: dict | None = None,
    commit: bool = True,
) -> Transaction:
    """Write a completed sale. The transaction code doubles as the order number."""
    if not items:
        raise TransactionError("Transaction requires at least one item")

    code = generate_transaction_code()
    tx = Transaction(
        transaction_code=code,
        order_number=code,
        customer_id=customer_id,
        customer_name=customer_name or "No Member",
        items=clean_items(items),
        subtotal_cents=subtotal_cents,
        tax_cents=tax_cents,
        discount_cents=discount_cents,
        total_cents=total_cents,
        payment_method=payment_method or "",
        payment_status=payment_status,
        transaction_type="sale",
        status="completed",
        cashier=cashier,
        location=location,
        notes=notes,
        points_earned=points_earned,
        cashback_earned_cents=cashback_earned_cents,
        point_details=point_details,
        points_used=points_used,
        points_used_value_cents=points_used_value_cents,
        points_usage_percentage=points_usage_percentage,
        crypto_details=crypto_details,
    )
    db.session.add(tx)
    db.session.flush()
    if commit:
        db.session.commit()
    return tx


def get_transaction(transaction_id: int) -> Transaction | None:
    return db.session.get(Transaction, transaction_id)


def get_by_code(code: str) -> Transaction | None:
    return db.session.query(Transaction).filter_by(transaction_code=code).first()


def list_transactions(
    *,
    page: int = 1,
    per_page: int = 50,
    status: str | None = None,
    customer_id: int | None = None,
    search: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    query = db.session.query(Transaction)
    if status:
        query = query.filter(Transaction.status == status)
    if customer_id is not None:
        query = query.filter(Transaction.customer_id == customer_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(Transaction.transaction_code.ilike(like), Transaction.customer_name.ilike(like))
        )
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at < end)

    per_page = min(max(per_page or 50, 1), 200)
    page = max(page or 1, 1)
    total = query.count()
    rows = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    return {
        "items": [t.to_dict() for t in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def refund_transaction(*, transaction_id: int, reason: str, cashier: str, amount_cents: int | None = None) -> dict:
    """
    Refund a completed sale.

    Appends a refund transaction (negative total) and flips the original to
    "refunded". Points are not reversed here; staff adjust them explicitly.
    """
    if not (reason or "").strip():
        raise TransactionError("Refund reason is required")

    original = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
    if original is None:
        raise TransactionError("Transaction not found")
    if original.transaction_type != "sale" or original.status != "completed":
        raise TransactionError(
            "Only completed sales can be refunded",
            details={"status": original.status, "transaction_type": original.transaction_type},
        )

    refund_amount = original.total_cents if amount_cents is None else amount_cents
    if refund_amount <= 0 or refund_amount > original.total_cents:
        raise TransactionError("Refund amount must be between 1 and the original total")

    code = generate_transaction_code()
    refund = Transaction(
        transaction_code=code,
        order_number=original.order_number,
        customer_id=original.customer_id,
        customer_name=original.customer_name,
        items=[],
        total_cents=-refund_amount,
        payment_method="refund",
        payment_status="completed",
        transaction_type="refund",
        status="completed",
        cashier=cashier,
        location=original.location,
        refund_reason=reason,
        original_transaction_id=original.id,
    )
    db.session.add(refund)
    original.status = "refunded"
    original.refund_reason = reason
    db.session.commit()
    return {"refund": refund.to_dict(), "original": original.to_dict()}


def transaction_stats(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    query = db.session.query(Transaction).filter(Transaction.transaction_type == "sale")
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at < end)

    total = query.count()
    completed = query.filter(Transaction.status == "completed")
    completed_count = completed.count()
    revenue = completed.with_entities(func.coalesce(func.sum(Transaction.total_cents), 0)).scalar() or 0
    refunded = query.filter(Transaction.status == "refunded").count()
    return {
        "total_transactions": total,
        "completed_transactions": completed_count,
        "refunded_transactions": refunded,
        "total_revenue_cents": int(revenue),
        "average_transaction_cents": int(revenue) // completed_count if completed_count else 0,
    }


def daily_summary(day: datetime) -> dict:
    start = datetime(day.year, day.month, day.day)
    stats = transaction_stats(start=start, end=start + timedelta(days=1))
    stats["date"] = start.date().isoformat()
    return stats
