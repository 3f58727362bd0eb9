# Overview: Service-layer operations for daily kiosk traffic counters.

"""
Visit Service

A "visit" is a kiosk session start (welcome screen tapped). An "order start"
is the moment a customer identifies (member code or No-Member). Counters are
kept per ISO date. Counting is analytics only: every failure is logged and
answered with a safe default so the kiosk flow never breaks on it.
"""
from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import DailyVisit
from ..time_utils import utcnow, date_key


def _get_or_create_day(key: str) -> DailyVisit:
    day = db.session.query(DailyVisit).filter_by(visit_date=key).first()
    if day is None:
        day = DailyVisit(visit_date=key, count=0, sessions=0, order_starts=0)
        db.session.add(day)
        db.session.flush()
    return day


def record_visit() -> bool:
    try:
        day = _get_or_create_day(date_key())
        day.count += 1
        day.sessions += 1
        day.last_visit = utcnow()
        db.session.commit()
        return True
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to record kiosk visit")
        return False


def record_order_start() -> bool:
    try:
        day = _get_or_create_day(date_key())
        day.order_starts += 1
        day.last_order_start = utcnow()
        db.session.commit()
        return True
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to record order start")
        return False


def get_today_visits() -> int:
    try:
        day = db.session.query(DailyVisit).filter_by(visit_date=date_key()).first()
        return day.count if day else 0
    except SQLAlchemyError:
        current_app.logger.exception("Failed to read today's visits")
        return 0


def get_visit_stats(days: int = 7) -> dict:
    """Counters for the last `days` days (today included), oldest first."""
    days = max(1, min(days, 366))
    today = utcnow().date()
    keys = [date_key(today - timedelta(days=offset)) for offset in range(days - 1, -1, -1)]
    try:
        rows = {
            row.visit_date: row
            for row in db.session.query(DailyVisit).filter(DailyVisit.visit_date.in_(keys)).all()
        }
    except SQLAlchemyError:
        current_app.logger.exception("Failed to read visit stats")
        rows = {}

    items = []
    for key in keys:
        row = rows.get(key)
        items.append(row.to_dict() if row else {
            "date": key, "count": 0, "sessions": 0, "order_starts": 0,
            "last_visit": None, "last_order_start": None,
        })
    total_visits = sum(i["count"] for i in items)
    total_orders = sum(i["order_starts"] for i in items)
    return {
        "days": items,
        "total_visits": total_visits,
        "total_order_starts": total_orders,
        "conversion_rate": round(total_orders / total_visits, 4) if total_visits else 0,
    }
