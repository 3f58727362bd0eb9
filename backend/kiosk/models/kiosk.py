from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z


class KioskSession(db.Model):
    """
    One customer's interaction with a kiosk, from the welcome screen until
    checkout, exit, or inactivity timeout.

    TIMERS: state/deadline_epoch/idle_timeout_override are the persisted
    snapshot of the session state machine (see services.session_machine).
    Deadlines are epoch seconds because a monotonic clock does not survive
    across worker processes.

    CART: Ephemeral cart lines (JSON). Cleared on expiry and after checkout.
    """
    __tablename__ = "kiosk_sessions"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_kiosk_sessions_token_hash"),
        db.Index("ix_kiosk_sessions_state", "state"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), nullable=False)
    kiosk_id = db.Column(db.String(64), nullable=False)

    # State machine snapshot
    state = db.Column(db.String(16), nullable=False, default="ACTIVE")
    resume_state = db.Column(db.String(16), nullable=True)
    deadline_epoch = db.Column(db.Float, nullable=True)
    idle_timeout_override = db.Column(db.Float, nullable=True)  # null: configured idle timeout
    expired_reason = db.Column(db.String(16), nullable=True)  # timeout, exit, checkout

    # Customer context
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    is_no_member = db.Column(db.Boolean, nullable=False, default=False)
    payment_method = db.Column(db.String(16), nullable=True)
    language = db.Column(db.String(8), nullable=False, default="en")

    cart = db.Column(db.JSON, nullable=False, default=list)
    points_usage_percentage = db.Column(db.Integer, nullable=False, default=0)

    # Last completed order (receipt screen)
    last_transaction_code = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("kiosk_sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kiosk_id": self.kiosk_id,
            "state": self.state,
            "expired_reason": self.expired_reason,
            "idle_timeout_override": self.idle_timeout_override,
            "customer_id": self.customer_id,
            "is_no_member": self.is_no_member,
            "payment_method": self.payment_method,
            "language": self.language,
            "cart": self.cart or [],
            "points_usage_percentage": self.points_usage_percentage,
            "last_transaction_code": self.last_transaction_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "ended_at": to_utc_z(self.ended_at),
        }


class KioskSetting(db.Model):
    """
    Runtime-editable kiosk settings (key -> JSON value).

    KEYS:
    - transaction_prefix: prefix for transaction codes (default "TRX")
    - non_member_categories: category ids visible to No-Member customers
    - category_order: ordered category ids for the menu
    - non_member_payment_methods: {"cash": bool, "card": bool, "crypto": bool}
    """
    __tablename__ = "kiosk_settings"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_kiosk_settings_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.JSON, nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class DailyVisit(db.Model):
    """Per-day kiosk traffic counters keyed by ISO date."""
    __tablename__ = "daily_visits"
    __table_args__ = (
        db.UniqueConstraint("visit_date", name="uq_daily_visits_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    visit_date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    count = db.Column(db.Integer, nullable=False, default=0)
    sessions = db.Column(db.Integer, nullable=False, default=0)
    order_starts = db.Column(db.Integer, nullable=False, default=0)
    last_visit = db.Column(db.DateTime(timezone=True), nullable=True)
    last_order_start = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "date": self.visit_date,
            "count": self.count,
            "sessions": self.sessions,
            "order_starts": self.order_starts,
            "last_visit": to_utc_z(self.last_visit),
            "last_order_start": to_utc_z(self.last_order_start),
        }
