# Overview: Service-layer operations for the pending points approval queue.

"""
Pending Points Service

WHY: Cashback earned at the kiosk is not credited immediately. Staff review
the queue and approve (points are applied to the ledger) or discard (no
ledger effect). Each entry is processed at most once.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import PendingPoints, Customer
from ..time_utils import utcnow
from . import customer_service
from .concurrency import lock_for_update
from .customer_service import PointsError


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DISCARDED = "discarded"


class PendingPointsError(Exception):
    """Raised for pending points errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def create_pending_points(
    *,
    customer_id: int,
    points_amount: int,
    transaction_code: str | None = None,
    reason: str | None = None,
    details: dict | None = None,
    source: str = "kiosk",
    commit: bool = True,
) -> PendingPoints:
    if isinstance(points_amount, bool) or not isinstance(points_amount, int) or points_amount == 0:
        raise PendingPointsError("points_amount must be a non-zero integer")
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise PendingPointsError("Customer not found")

    entry = PendingPoints(
        customer_id=customer_id,
        customer_name=customer.full_name,
        points_amount=points_amount,
        transaction_code=transaction_code,
        reason=reason,
        details=details,
        source=source,
        status=STATUS_PENDING,
    )
    db.session.add(entry)
    db.session.flush()
    if commit:
        db.session.commit()
    return entry


def list_pending(*, customer_id: int | None = None) -> list[dict]:
    query = db.session.query(PendingPoints).filter(PendingPoints.status == STATUS_PENDING)
    if customer_id is not None:
        query = query.filter(PendingPoints.customer_id == customer_id)
    query = query.order_by(PendingPoints.created_at.desc(), PendingPoints.id.desc())
    return [p.to_dict() for p in query.all()]


def list_processed(*, limit: int = 100) -> list[dict]:
    query = (
        db.session.query(PendingPoints)
        .filter(PendingPoints.status != STATUS_PENDING)
        .order_by(PendingPoints.processed_at.desc(), PendingPoints.id.desc())
        .limit(limit)
    )
    return [p.to_dict() for p in query.all()]


def _load_pending(pending_id: int) -> PendingPoints:
    entry = lock_for_update(db.session.query(PendingPoints).filter_by(id=pending_id)).first()
    if entry is None:
        raise PendingPointsError("Pending point not found")
    if entry.status != STATUS_PENDING:
        raise PendingPointsError(
            f"Pending point already {entry.status}",
            details={"status": entry.status},
        )
    return entry


def approve(pending_id: int, *, processed_by: str) -> dict:
    """
    Apply the entry to the customer's ledger, then mark it approved.

    Both writes commit together. A negative entry that exceeds the balance
    raises PointsError and leaves the entry pending.
    """
    entry = _load_pending(pending_id)
    reason = entry.reason or "Approved kiosk points"
    try:
        if entry.points_amount > 0:
            customer_service.add_points(
                entry.customer_id,
                entry.points_amount,
                reason=reason,
                transaction_code=entry.transaction_code,
                details=entry.details,
                commit=False,
            )
        else:
            customer_service.subtract_points(
                entry.customer_id,
                -entry.points_amount,
                reason=reason,
                transaction_code=entry.transaction_code,
                details=entry.details,
                commit=False,
            )
        entry.status = STATUS_APPROVED
        entry.processed_at = utcnow()
        entry.processed_by = processed_by
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Approved pending points id=%s customer=%s amount=%s by=%s",
        entry.id, entry.customer_id, entry.points_amount, processed_by,
    )
    return entry.to_dict()


def discard(pending_id: int, *, processed_by: str) -> dict:
    entry = _load_pending(pending_id)
    entry.status = STATUS_DISCARDED
    entry.processed_at = utcnow()
    entry.processed_by = processed_by
    db.session.commit()
    return entry.to_dict()


def _batch(ids: list[int], func, processed_by: str) -> list[dict]:
    results = []
    for pending_id in ids:
        try:
            entry = func(pending_id, processed_by=processed_by)
            results.append({"id": pending_id, "success": True, "entry": entry})
        except (PendingPointsError, PointsError) as e:
            db.session.rollback()
            results.append({"id": pending_id, "success": False, "error": str(e)})
    return results


def batch_approve(ids: list[int], *, processed_by: str) -> list[dict]:
    """Approve each id independently; one failure does not stop the rest."""
    return _batch(ids, approve, processed_by)


def batch_discard(ids: list[int], *, processed_by: str) -> list[dict]:
    return _batch(ids, discard, processed_by)
