from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z


class Customer(db.Model):
    """
    Kiosk member (loyalty customer).

    WHY: Members are identified at the kiosk by their member code, get member
    pricing, see their allowed categories, and earn cashback points.

    POINTS: The balance is never stored. It is the fold over the append-only
    customer_point_transactions ledger (added minus subtracted).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("customer_code", name="uq_customers_code"),
        db.Index("ix_customers_member_id", "member_id"),
        db.Index("ix_customers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable code (e.g., "CK-0001"); used as the default member id
    customer_code = db.Column(db.String(32), nullable=False)
    member_id = db.Column(db.String(64), nullable=True)

    name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=True)
    nickname = db.Column(db.String(128), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    cell = db.Column(db.String(32), nullable=True)
    nationality = db.Column(db.String(64), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)

    # Category ids this member may browse (empty = every active category)
    allowed_categories = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Denormalized aggregates (updated when sales are completed / sessions start)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    visit_count = db.Column(db.Integer, nullable=False, default=0)
    last_visit_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.name, self.last_name) if p)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_code": self.customer_code,
            "member_id": self.member_id,
            "name": self.name,
            "last_name": self.last_name,
            "nickname": self.nickname,
            "email": self.email,
            "cell": self.cell,
            "nationality": self.nationality,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "allowed_categories": self.allowed_categories or [],
            "is_active": self.is_active,
            "total_spent_cents": self.total_spent_cents,
            "visit_count": self.visit_count,
            "last_visit_at": to_utc_z(self.last_visit_at) if self.last_visit_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class CustomerPointTransaction(db.Model):
    """
    Append-only ledger of loyalty point events.

    TYPES:
    - added: points credited (approved cashback, manual adjustment)
    - minus: points debited (redeemed at checkout, manual adjustment)

    WHY: Immutable audit trail. The balance is always recomputed from these rows.
    """
    __tablename__ = "customer_point_transactions"
    __table_args__ = (
        db.Index("ix_point_tx_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)  # Always positive
    type = db.Column(db.String(8), nullable=False)  # added, minus
    reason = db.Column(db.String(255), nullable=True)

    transaction_code = db.Column(db.String(64), nullable=True, index=True)
    payment_method = db.Column(db.String(16), nullable=True)
    purchase_amount_cents = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)

    is_manual_adjustment = db.Column(db.Boolean, nullable=False, default=False)
    adjusted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("point_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount": self.amount,
            "type": self.type,
            "reason": self.reason,
            "transaction_code": self.transaction_code,
            "payment_method": self.payment_method,
            "purchase_amount_cents": self.purchase_amount_cents,
            "details": self.details,
            "is_manual_adjustment": self.is_manual_adjustment,
            "adjusted_by_user_id": self.adjusted_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class PendingPoints(db.Model):
    """
    Approval queue for points earned at the kiosk.

    LIFECYCLE:
    1. pending: created by checkout (cashback earned by a member)
    2. approved: staff approved; points_amount was applied to the ledger
    3. discarded: staff rejected; nothing is applied
    """
    __tablename__ = "pending_points"
    __table_args__ = (
        db.Index("ix_pending_points_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    # Signed: negative entries debit points on approval
    points_amount = db.Column(db.Integer, nullable=False)
    transaction_code = db.Column(db.String(64), nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=True)
    source = db.Column(db.String(32), nullable=False, default="kiosk")
    details = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_by = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("pending_points", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "points_amount": self.points_amount,
            "transaction_code": self.transaction_code,
            "reason": self.reason,
            "source": self.source,
            "details": self.details,
            "status": self.status,
            "processed_at": to_utc_z(self.processed_at),
            "processed_by": self.processed_by,
            "created_at": to_utc_z(self.created_at),
        }
