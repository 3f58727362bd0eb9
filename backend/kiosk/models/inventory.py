from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    STATUS:
    - purchasing: stock received from a supplier (positive)
    - sales: stock sold through the kiosk (negative)

    WHY: Current stock is never stored. For a (product, variant) key it is
    max(0, sum(purchasing) - sum(sales)).
    variant_id is "" for products without variants so the key is never NULL.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_variant", "product_id", "variant_id"),
        db.Index("ix_stock_movements_status_occurred", "status", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=True)
    variant_id = db.Column(db.String(64), nullable=False, default="")
    variant_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)  # Always positive; direction comes from status
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    supplier = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False)  # purchasing, sales
    notes = db.Column(db.Text, nullable=True)

    purchase_order_id = db.Column(db.Integer, db.ForeignKey("stock_purchasings.id"), nullable=True, index=True)
    created_by = db.Column(db.String(64), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))
    purchase_order = db.relationship("StockPurchasing", backref=db.backref("movements", lazy=True))

    @property
    def stock_key(self) -> str:
        if self.variant_id:
            return f"{self.product_id}-{self.variant_id}"
        return str(self.product_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "variant_id": self.variant_id,
            "variant_name": self.variant_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "supplier": self.supplier,
            "status": self.status,
            "notes": self.notes,
            "purchase_order_id": self.purchase_order_id,
            "created_by": self.created_by,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class StockPurchasing(db.Model):
    """Purchase order header; its lines are purchasing stock movements."""
    __tablename__ = "stock_purchasings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    total_items = db.Column(db.Integer, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="completed")
    created_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier": self.supplier,
            "notes": self.notes,
            "total_items": self.total_items,
            "total_quantity": self.total_quantity,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
