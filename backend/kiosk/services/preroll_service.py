# Overview: Service-layer operations for prerolls; quality x strain x size grid, prices, seeding.

"""
Preroll Service

The prerolls page is a grid of quality (rows) x strain (columns). Each cell
offers three sizes. A cell/size price comes from its variant override when
staff set one, otherwise from the size's default price, otherwise 100 baht.
"""
from __future__ import annotations

from werkzeug.datastructures import FileStorage

from ..extensions import db
from ..models import PrerollType, PrerollSize, PrerollVariant
from .storage_service import save_upload, delete_blob


KIND_QUALITY = "quality"
KIND_STRAIN = "strain"

DEFAULT_PRICE_CENTS = 10000

DEFAULT_QUALITIES = (("outdoor", "Outdoor"), ("indoor", "Indoor"), ("top", "Top"))
DEFAULT_STRAINS = (("sativa", "Sativa"), ("hybrid", "Hybrid"), ("indica", "Indica"))
DEFAULT_SIZES = (("small", "Small", 10000), ("normal", "Normal", 15000), ("king", "King", 20000))

# quality -> size -> price cents
DEFAULT_QUALITY_PRICES = {
    "outdoor": {"small": 10000, "normal": 15000, "king": 20000},
    "indoor": {"small": 15000, "normal": 20000, "king": 25000},
    "top": {"small": 20000, "normal": 25000, "king": 30000},
}


class PrerollError(Exception):
    """Raised for preroll operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _get_type(kind: str, key: str) -> PrerollType | None:
    return db.session.query(PrerollType).filter_by(kind=kind, type_key=key).first()


def _get_size(key: str) -> PrerollSize | None:
    return db.session.query(PrerollSize).filter_by(size_key=key).first()


def _get_variant(quality: str, strain: str, size: str) -> PrerollVariant | None:
    return (
        db.session.query(PrerollVariant)
        .filter_by(quality_key=quality, strain_key=strain, size_key=size)
        .first()
    )


def get_catalog(*, active_only: bool = True) -> dict:
    types = db.session.query(PrerollType)
    if active_only:
        types = types.filter(PrerollType.is_active.is_(True))
    types = types.order_by(PrerollType.sort_order.asc(), PrerollType.id.asc()).all()
    sizes = db.session.query(PrerollSize).order_by(PrerollSize.sort_order.asc()).all()
    variants = db.session.query(PrerollVariant).all()
    return {
        "qualities": [t.to_dict() for t in types if t.kind == KIND_QUALITY],
        "strains": [t.to_dict() for t in types if t.kind == KIND_STRAIN],
        "sizes": [s.to_dict() for s in sizes],
        "variants": [v.to_dict() for v in variants],
    }


def get_price_cents(quality: str, strain: str, size: str) -> int:
    variant = _get_variant(quality, strain, size)
    if variant is not None and variant.price_cents is not None:
        return variant.price_cents
    size_row = _get_size(size)
    if size_row is not None and size_row.price_cents:
        return size_row.price_cents
    return DEFAULT_PRICE_CENTS


def resolve_preroll(quality: str, strain: str, size: str) -> dict:
    """Validate a kiosk preroll selection and return its cart description."""
    quality_row = _get_type(KIND_QUALITY, quality)
    strain_row = _get_type(KIND_STRAIN, strain)
    size_row = _get_size(size)
    if quality_row is None or not quality_row.is_active:
        raise PrerollError("Unknown preroll quality", details={"quality": quality})
    if strain_row is None or not strain_row.is_active:
        raise PrerollError("Unknown preroll strain", details={"strain": strain})
    if size_row is None:
        raise PrerollError("Unknown preroll size", details={"size": size})

    variant = _get_variant(quality, strain, size)
    if variant is not None and not variant.is_available:
        raise PrerollError("This preroll is not available")

    return {
        "name": f"Prerolls - {quality_row.name} - {strain_row.name} - {size_row.name}",
        "price_cents": get_price_cents(quality, strain, size),
        "image": variant.image if variant is not None else None,
        "quality": quality,
        "strain": strain,
        "size": size,
    }


def create_type(*, kind: str, type_key: str, name: str, color: str | None = None, sort_order: int = 0) -> dict:
    if kind not in (KIND_QUALITY, KIND_STRAIN):
        raise PrerollError("kind must be 'quality' or 'strain'")
    if not type_key or not name:
        raise PrerollError("type_key and name are required")
    if _get_type(kind, type_key):
        raise PrerollError(f"{kind} '{type_key}' already exists")
    row = PrerollType(kind=kind, type_key=type_key, name=name, color=color, sort_order=sort_order)
    db.session.add(row)
    db.session.commit()
    return row.to_dict()


def update_type(*, type_id: int, patch: dict) -> dict | None:
    row = db.session.get(PrerollType, type_id)
    if row is None:
        return None
    for k in ("name", "color", "sort_order", "is_active"):
        if k in patch:
            setattr(row, k, patch[k])
    db.session.commit()
    return row.to_dict()


def delete_type(*, type_id: int) -> bool:
    row = db.session.get(PrerollType, type_id)
    if row is None:
        return False
    column = PrerollVariant.quality_key if row.kind == KIND_QUALITY else PrerollVariant.strain_key
    for variant in db.session.query(PrerollVariant).filter(column == row.type_key).all():
        delete_blob(variant.image_path)
        db.session.delete(variant)
    db.session.delete(row)
    db.session.commit()
    return True


def update_size_prices(prices: dict[str, int]) -> list[dict]:
    for key, price in prices.items():
        size = _get_size(key)
        if size is None:
            raise PrerollError("Unknown preroll size", details={"size": key})
        if isinstance(price, bool) or not isinstance(price, int) or price < 0:
            raise PrerollError("price must be a non-negative integer (cents)")
        size.price_cents = price
    db.session.commit()
    return [s.to_dict() for s in db.session.query(PrerollSize).order_by(PrerollSize.sort_order.asc()).all()]


def upsert_variant(
    *,
    quality: str,
    strain: str,
    size: str,
    price_cents: int | None = None,
    is_available: bool | None = None,
    image: FileStorage | None = None,
) -> dict:
    if _get_type(KIND_QUALITY, quality) is None or _get_type(KIND_STRAIN, strain) is None or _get_size(size) is None:
        raise PrerollError("Unknown preroll combination")
    variant = _get_variant(quality, strain, size)
    if variant is None:
        variant = PrerollVariant(quality_key=quality, strain_key=strain, size_key=size)
        db.session.add(variant)
    if price_cents is not None:
        if price_cents < 0:
            raise PrerollError("price_cents must be >= 0")
        variant.price_cents = price_cents
    if is_available is not None:
        variant.is_available = is_available
    if image is not None:
        delete_blob(variant.image_path)
        variant.image, variant.image_path = save_upload(
            image, folder="prerolls", owner_code=f"{quality}-{strain}", slot=size
        )
    db.session.commit()
    return variant.to_dict()


def seed_default_data(*, reset: bool = False) -> dict:
    """
    Create the default 3 x 3 grid with per-quality prices.
    reset=True wipes existing preroll data first.
    """
    if reset:
        for variant in db.session.query(PrerollVariant).all():
            delete_blob(variant.image_path)
        db.session.query(PrerollVariant).delete()
        db.session.query(PrerollType).delete()
        db.session.query(PrerollSize).delete()
        db.session.flush()
    elif db.session.query(PrerollType).count():
        return {"created": False}

    for order, (key, name) in enumerate(DEFAULT_QUALITIES):
        db.session.add(PrerollType(kind=KIND_QUALITY, type_key=key, name=name, sort_order=order))
    for order, (key, name) in enumerate(DEFAULT_STRAINS):
        db.session.add(PrerollType(kind=KIND_STRAIN, type_key=key, name=name, sort_order=order))
    for order, (key, name, price) in enumerate(DEFAULT_SIZES):
        db.session.add(PrerollSize(size_key=key, name=name, price_cents=price, sort_order=order))
    for quality, prices in DEFAULT_QUALITY_PRICES.items():
        for strain, _ in DEFAULT_STRAINS:
            for size, price in prices.items():
                db.session.add(PrerollVariant(quality_key=quality, strain_key=strain, size_key=size, price_cents=price))
    db.session.commit()
    return {"created": True}
