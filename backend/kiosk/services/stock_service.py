# Overview: Service-layer operations for stock; append-only movements and the stock fold.

"""
Stock Movement Service

WHY: Stock is never stored as a number that can drift. Every purchase and
every kiosk sale appends a movement; current stock for a product/variant
key is recomputed as

    max(0, sum(purchasing quantity) - sum(sales quantity))

Keys are "<product_id>" for simple products and "<product_id>-<variant_id>"
for variant products.
"""
from __future__ import annotations

from ..extensions import db
from ..models import StockMovement, StockPurchasing, Product


STATUS_PURCHASING = "purchasing"
STATUS_SALES = "sales"
MOVEMENT_STATUSES = (STATUS_PURCHASING, STATUS_SALES)


class StockError(Exception):
    """Raised for stock operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def stock_key(product_id: int, variant_id: str | None = None) -> str:
    if variant_id:
        return f"{product_id}-{variant_id}"
    return str(product_id)


def fold_movements(movements) -> dict[str, dict]:
    """
    Fold movements into {key: {"purchased", "sold", "stock"}}.

    Accepts StockMovement rows or dicts with product_id/variant_id/quantity/status.
    """
    summary: dict[str, dict] = {}
    for m in movements:
        if isinstance(m, dict):
            key = stock_key(m["product_id"], m.get("variant_id"))
            quantity, status = m["quantity"], m["status"]
        else:
            key = m.stock_key
            quantity, status = m.quantity, m.status
        entry = summary.setdefault(key, {"purchased": 0, "sold": 0, "stock": 0})
        if status == STATUS_PURCHASING:
            entry["purchased"] += quantity
        elif status == STATUS_SALES:
            entry["sold"] += quantity
    for entry in summary.values():
        entry["stock"] = max(0, entry["purchased"] - entry["sold"])
    return summary


def calculate_product_stock(product_id: int, variant_id: str | None = None) -> int:
    rows = (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .filter(StockMovement.variant_id == (variant_id or ""))
        .all()
    )
    return fold_movements(rows).get(stock_key(product_id, variant_id), {"stock": 0})["stock"]


def get_stock_summary() -> dict:
    """Per-key stock plus totals across the whole ledger."""
    rows = db.session.query(StockMovement).all()
    summary = fold_movements(rows)
    return {
        "items": summary,
        "total_stock": sum(e["stock"] for e in summary.values()),
        "total_purchased": sum(e["purchased"] for e in summary.values()),
        "total_sold": sum(e["sold"] for e in summary.values()),
    }


def record_movement(
    *,
    product: Product,
    quantity: int,
    status: str,
    variant_id: str | None = None,
    variant_name: str | None = None,
    price_cents: int = 0,
    supplier: str | None = None,
    notes: str | None = None,
    purchase_order_id: int | None = None,
    created_by: str | None = None,
) -> StockMovement:
    """Append one movement. Caller commits."""
    if status not in MOVEMENT_STATUSES:
        raise StockError(f"Invalid movement status: {status}")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise StockError("quantity must be a positive integer")

    movement = StockMovement(
        product_id=product.id,
        product_name=product.name,
        variant_id=variant_id or "",
        variant_name=variant_name,
        quantity=quantity,
        price_cents=price_cents,
        supplier=supplier,
        status=status,
        notes=notes,
        purchase_order_id=purchase_order_id,
        created_by=created_by,
    )
    db.session.add(movement)
    return movement


def record_sale_movements(*, transaction_code: str, lines: list[dict], created_by: str) -> list[StockMovement]:
    """
    Append a "sales" movement for each cart line backed by a catalog product.

    Custom joints and prerolls have no product row and are skipped.
    Caller commits.
    """
    movements = []
    for line in lines:
        product_id = line.get("product_id")
        if not product_id:
            continue
        product = db.session.get(Product, product_id)
        if product is None:
            continue
        movements.append(record_movement(
            product=product,
            quantity=int(line.get("quantity") or 0),
            status=STATUS_SALES,
            variant_id=line.get("stock_variant_id") or "",
            variant_name=line.get("variant_name"),
            price_cents=int(line.get("unit_price_cents") or 0),
            notes=f"Kiosk sale - Transaction: {transaction_code}",
            created_by=created_by,
        ))
    db.session.flush()
    return movements


def add_purchasing(*, supplier: str | None, notes: str | None, items: list[dict], created_by: str | None) -> dict:
    """
    Record a purchase order: one header plus one purchasing movement per item.

    items: [{"product_id", "quantity", "price_cents", "variant_id"?, "variant_name"?}]
    """
    if not items:
        raise StockError("Purchase order requires at least one item")

    products = {}
    for item in items:
        product = db.session.get(Product, item.get("product_id"))
        if product is None:
            raise StockError("Product not found", details={"product_id": item.get("product_id")})
        products[item["product_id"]] = product

    order = StockPurchasing(
        supplier=supplier,
        notes=notes,
        total_items=len(items),
        total_quantity=sum(int(i.get("quantity") or 0) for i in items),
        total_amount_cents=sum(int(i.get("quantity") or 0) * int(i.get("price_cents") or 0) for i in items),
        status="completed",
        created_by=created_by,
    )
    db.session.add(order)
    db.session.flush()

    for item in items:
        record_movement(
            product=products[item["product_id"]],
            quantity=item.get("quantity"),
            status=STATUS_PURCHASING,
            variant_id=item.get("variant_id"),
            variant_name=item.get("variant_name"),
            price_cents=int(item.get("price_cents") or 0),
            supplier=supplier,
            notes=notes,
            purchase_order_id=order.id,
            created_by=created_by,
        )

    db.session.commit()
    data = order.to_dict()
    data["movements"] = [m.to_dict() for m in order.movements]
    return data


def list_movements(*, product_id: int | None = None, status: str | None = None, limit: int = 200) -> list[dict]:
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if status:
        query = query.filter(StockMovement.status == status)
    rows = query.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc()).limit(limit).all()
    return [m.to_dict() for m in rows]


def list_purchasings(*, limit: int = 100) -> list[dict]:
    rows = (
        db.session.query(StockPurchasing)
        .order_by(StockPurchasing.created_at.desc(), StockPurchasing.id.desc())
        .limit(limit)
        .all()
    )
    return [r.to_dict() for r in rows]


def can_add_to_cart(
    product: Product,
    *,
    requested: int,
    in_cart: int,
    variant_id: str | None = None,
) -> dict:
    """
    Kiosk stock gate.

    Products without alert_kiosk_level are sold without limit. Otherwise the
    cart quantity plus the request may not exceed current stock.
    """
    if product.alert_kiosk_level is None:
        return {"can_add": True, "reason": None}

    stock = calculate_product_stock(product.id, variant_id)
    if stock <= 0:
        return {"can_add": False, "reason": "Out of stock", "stock": stock}
    if in_cart + requested > stock:
        return {
            "can_add": False,
            "reason": f"Only {stock} available ({in_cart} already in cart)",
            "stock": stock,
        }
    return {"can_add": True, "reason": None, "stock": stock}


def stock_flags(product: Product, variant_id: str | None = None) -> dict:
    """Low/out-of-stock flags shown on the kiosk menu."""
    if product.alert_kiosk_level is None:
        return {"track_stock": False, "stock": None, "is_low_stock": False, "is_out_of_stock": False}
    stock = calculate_product_stock(product.id, variant_id)
    return {
        "track_stock": True,
        "stock": stock,
        "is_low_stock": 0 < stock <= product.alert_kiosk_level,
        "is_out_of_stock": stock <= 0,
    }
