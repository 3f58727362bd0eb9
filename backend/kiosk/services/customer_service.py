# Overview: Service-layer operations for customers and the loyalty points ledger.

"""
Customer & Loyalty Service

WHY: Members are identified at the kiosk by member code. Their point
balance is the fold of an append-only ledger:

    balance = sum(amount where type == "added") - sum(amount where type == "minus")

A subtraction is checked against the fold before the row is appended, so
the balance can never go negative. The customer row is touched on every
ledger write, so its version_id serializes concurrent writers.
"""
from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Customer, CustomerPointTransaction
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .sequence_service import next_code


class PointsError(Exception):
    """Raised for point ledger errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CustomerError(Exception):
    """Raised for customer operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


POINT_ADDED = "added"
POINT_MINUS = "minus"

# (minimum points, tier) from highest to lowest
TIERS = (
    (2000, "Platinum"),
    (1000, "Gold"),
    (500, "Silver"),
    (0, "Bronze"),
)

# Slider positions the redemption percentage snaps to
REDEMPTION_SNAP_POINTS = (0, 25, 50, 75, 100)
REDEMPTION_SNAP_THRESHOLD = 4

CUSTOMER_MUTABLE_FIELDS = {
    "member_id", "name", "last_name", "nickname", "email", "cell", "nationality",
    "date_of_birth", "allowed_categories", "is_active",
}


# =============================================================================
# Points (pure)
# =============================================================================

def calculate_total_points(entries) -> int:
    """Fold ledger entries (rows or dicts with amount/type) into a balance."""
    total = 0
    for entry in entries:
        amount = entry["amount"] if isinstance(entry, dict) else entry.amount
        kind = entry["type"] if isinstance(entry, dict) else entry.type
        if kind == POINT_ADDED:
            total += amount
        elif kind == POINT_MINUS:
            total -= amount
    return total


def get_tier(points: int) -> str:
    for minimum, name in TIERS:
        if points >= minimum:
            return name
    return TIERS[-1][1]


def snap_percentage(percentage: int) -> int:
    for snap in REDEMPTION_SNAP_POINTS:
        if abs(percentage - snap) <= REDEMPTION_SNAP_THRESHOLD:
            return snap
    return percentage


def max_redemption_percentage(*, total_points: int, subtotal_cents: int, point_value_cents: int) -> int:
    """
    Highest slider percentage that does not pay more than the order total.

    When the balance is worth at least the order, the cap is the share of
    the balance that covers the order; otherwise the whole balance may be used.
    """
    points_value = total_points * point_value_cents
    if points_value <= 0:
        return 0
    if points_value >= subtotal_cents:
        return subtotal_cents * 100 // points_value
    return 100


def calculate_redemption(
    *,
    total_points: int,
    subtotal_cents: int,
    percentage: int,
    point_value_cents: int,
) -> dict:
    """
    Points applied to an order for a slider percentage.

    points_to_use = floor(total_points x pct / 100); value = points x point value;
    total after points = max(0, subtotal - value).
    """
    percentage = max(0, min(100, int(percentage)))
    percentage = snap_percentage(percentage)
    max_pct = max_redemption_percentage(
        total_points=total_points,
        subtotal_cents=subtotal_cents,
        point_value_cents=point_value_cents,
    )
    percentage = min(percentage, max_pct)

    points_to_use = max(0, total_points) * percentage // 100
    value_cents = points_to_use * point_value_cents
    return {
        "percentage": percentage,
        "max_percentage": max_pct,
        "points_to_use": points_to_use,
        "points_value_cents": value_cents,
        "total_after_points_cents": max(0, subtotal_cents - value_cents),
    }


# =============================================================================
# Customers
# =============================================================================

def get_customer(customer_id: int) -> Customer | None:
    return db.session.get(Customer, customer_id)


def get_by_member_code(code: str) -> Customer | None:
    """Look up an active member by member id or customer code (case-insensitive)."""
    code = (code or "").strip()
    if not code:
        return None
    upper = code.upper()
    return (
        db.session.query(Customer)
        .filter(Customer.is_active.is_(True))
        .filter(
            db.or_(
                db.func.upper(Customer.member_id) == upper,
                db.func.upper(Customer.customer_code) == upper,
            )
        )
        .order_by(Customer.id.asc())
        .first()
    )


def _coerce_patch(patch: dict) -> dict:
    patch = dict(patch)
    dob = patch.get("date_of_birth")
    if isinstance(dob, str):
        try:
            patch["date_of_birth"] = date.fromisoformat(dob) if dob else None
        except ValueError:
            raise CustomerError("date_of_birth must be YYYY-MM-DD")
    allowed = patch.get("allowed_categories")
    if allowed is not None:
        if not isinstance(allowed, list) or any(isinstance(c, bool) or not isinstance(c, int) for c in allowed):
            raise CustomerError("allowed_categories must be a list of category ids")
    return patch


def create_customer(*, patch: dict) -> dict:
    patch = _coerce_patch(patch)
    if not (patch.get("name") or "").strip():
        raise CustomerError("name is required")

    customer = Customer(customer_code=next_code("customer"))
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    if not customer.member_id:
        customer.member_id = customer.customer_code
    elif get_by_member_code(customer.member_id):
        raise CustomerError("member_id already in use")

    db.session.add(customer)
    db.session.commit()
    return customer_summary(customer)


def update_customer(*, customer_id: int, patch: dict) -> dict | None:
    customer = get_customer(customer_id)
    if customer is None:
        return None
    patch = _coerce_patch(patch)
    if patch.get("member_id") and patch["member_id"] != customer.member_id:
        clash = get_by_member_code(patch["member_id"])
        if clash and clash.id != customer.id:
            raise CustomerError("member_id already in use")
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.commit()
    return customer_summary(customer)


def delete_customer(*, customer_id: int) -> bool:
    """Deactivate; the ledger and transactions keep referencing the row."""
    customer = get_customer(customer_id)
    if customer is None:
        return False
    customer.is_active = False
    db.session.commit()
    return True


def list_customers(*, search: str | None = None, active_only: bool = False) -> list[dict]:
    query = db.session.query(Customer)
    if active_only:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Customer.name.ilike(like),
                Customer.last_name.ilike(like),
                Customer.nickname.ilike(like),
                Customer.member_id.ilike(like),
                Customer.customer_code.ilike(like),
                Customer.email.ilike(like),
                Customer.cell.ilike(like),
            )
        )
    customers = query.order_by(Customer.id.asc()).all()
    return [customer_summary(c) for c in customers]


def customer_summary(customer: Customer) -> dict:
    data = customer.to_dict()
    points = get_points_balance(customer.id)
    data["points"] = points
    data["tier"] = get_tier(points)
    return data


def record_visit(customer_id: int) -> None:
    """Increment visit_count. Caller commits."""
    customer = get_customer(customer_id)
    if customer is None:
        raise CustomerError("Customer not found")
    customer.visit_count = (customer.visit_count or 0) + 1
    customer.last_visit_at = utcnow()


# =============================================================================
# Points ledger
# =============================================================================

def get_points_balance(customer_id: int) -> int:
    rows = db.session.query(CustomerPointTransaction).filter_by(customer_id=customer_id).all()
    return calculate_total_points(rows)


def get_points_history(customer_id: int, *, limit: int | None = None) -> list[dict]:
    query = (
        db.session.query(CustomerPointTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(CustomerPointTransaction.created_at.desc(), CustomerPointTransaction.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return [row.to_dict() for row in query.all()]


def _append_entry(
    *,
    customer_id: int,
    amount: int,
    kind: str,
    reason: str | None,
    transaction_code: str | None,
    payment_method: str | None,
    purchase_amount_cents: int | None,
    details: dict | None,
    is_manual_adjustment: bool,
    user_id: int | None,
    commit: bool,
) -> CustomerPointTransaction:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise PointsError("Points amount must be a positive integer")

    def _op() -> CustomerPointTransaction:
        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if customer is None:
            raise PointsError("Customer not found")

        if kind == POINT_MINUS:
            balance = get_points_balance(customer_id)
            if balance < amount:
                raise PointsError(
                    "Insufficient points",
                    details={"balance": balance, "requested": amount},
                )

        entry = CustomerPointTransaction(
            customer_id=customer_id,
            amount=amount,
            type=kind,
            reason=reason,
            transaction_code=transaction_code,
            payment_method=payment_method,
            purchase_amount_cents=purchase_amount_cents,
            details=details,
            is_manual_adjustment=is_manual_adjustment,
            adjusted_by_user_id=user_id,
        )
        db.session.add(entry)
        # Touching the customer bumps version_id so concurrent writers conflict
        customer.updated_at = utcnow()
        db.session.flush()
        if commit:
            db.session.commit()
        return entry

    if commit:
        return run_with_retry(_op)
    return _op()


def add_points(
    customer_id: int,
    amount: int,
    *,
    reason: str | None = None,
    transaction_code: str | None = None,
    payment_method: str | None = None,
    purchase_amount_cents: int | None = None,
    details: dict | None = None,
    is_manual_adjustment: bool = False,
    user_id: int | None = None,
    commit: bool = True,
) -> CustomerPointTransaction:
    return _append_entry(
        customer_id=customer_id,
        amount=amount,
        kind=POINT_ADDED,
        reason=reason,
        transaction_code=transaction_code,
        payment_method=payment_method,
        purchase_amount_cents=purchase_amount_cents,
        details=details,
        is_manual_adjustment=is_manual_adjustment,
        user_id=user_id,
        commit=commit,
    )


def subtract_points(
    customer_id: int,
    amount: int,
    *,
    reason: str | None = None,
    transaction_code: str | None = None,
    payment_method: str | None = None,
    purchase_amount_cents: int | None = None,
    details: dict | None = None,
    is_manual_adjustment: bool = False,
    user_id: int | None = None,
    commit: bool = True,
) -> CustomerPointTransaction:
    """Debit points; raises PointsError("Insufficient points") when the balance is too low."""
    return _append_entry(
        customer_id=customer_id,
        amount=amount,
        kind=POINT_MINUS,
        reason=reason,
        transaction_code=transaction_code,
        payment_method=payment_method,
        purchase_amount_cents=purchase_amount_cents,
        details=details,
        is_manual_adjustment=is_manual_adjustment,
        user_id=user_id,
        commit=commit,
    )


def adjust_points(*, customer_id: int, amount: int, adjustment_type: str, reason: str, user_id: int | None) -> dict:
    """Manual staff adjustment (adjustment_type "add" or "subtract")."""
    if not (reason or "").strip():
        raise PointsError("Adjustment reason is required")
    if adjustment_type == "add":
        entry = add_points(customer_id, amount, reason=reason, is_manual_adjustment=True, user_id=user_id)
    elif adjustment_type == "subtract":
        entry = subtract_points(customer_id, amount, reason=reason, is_manual_adjustment=True, user_id=user_id)
    else:
        raise PointsError("adjustment_type must be 'add' or 'subtract'")
    return {"entry": entry.to_dict(), "balance": get_points_balance(customer_id)}
