# Overview: Service-layer operations for the kiosk catalog (categories, subcategories, products).

"""
Catalog Service

WHY: The kiosk menu is built from categories -> subcategories -> products.
Admin screens maintain the catalog; the kiosk only reads it.

VISIBILITY:
- Members see the categories listed in Customer.allowed_categories
  (every active category when the list is empty)
- No-Member customers see the non_member_categories setting
- Nobody identified yet sees nothing

ORDERING: Categories follow the saved category_order setting; categories
missing from it go last, then by name.
"""
from __future__ import annotations

from werkzeug.datastructures import FileStorage

from ..extensions import db
from ..models import Category, Subcategory, Product, Customer
from . import settings_service
from .sequence_service import next_code
from .storage_service import save_upload, delete_blob


class CatalogError(Exception):
    """Raised for catalog operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


CATEGORY_MUTABLE_FIELDS = {
    "name", "description", "special_page", "text_color", "background_fit", "is_active",
}
SUBCATEGORY_MUTABLE_FIELDS = {
    "category_id", "name", "description", "text_color", "sort_order", "is_active",
}
PRODUCT_MUTABLE_FIELDS = {
    "category_id", "subcategory_id", "name", "description", "price_cents", "member_price_cents",
    "has_variants", "variants", "cashback_enabled", "cashback_type", "cashback_value",
    "cashback_min_purchase_cents", "quantity", "alert_kiosk_level", "pos_item_id",
    "sort_order", "is_active",
}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k in allowed:
            setattr(obj, k, v)


# =============================================================================
# Categories
# =============================================================================

def sort_categories(categories: list[Category], order: list[int]) -> list[Category]:
    """Order by position in `order`; unlisted categories last, then by name."""
    position = {cat_id: idx for idx, cat_id in enumerate(order)}
    unlisted = len(order)
    return sorted(
        categories,
        key=lambda c: (position.get(c.id, unlisted), (c.name or "").lower(), c.id),
    )


def list_categories(*, active_only: bool = False) -> list[dict]:
    query = db.session.query(Category)
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    ordered = sort_categories(query.all(), settings_service.get_category_order())
    return [c.to_dict() for c in ordered]


def get_category(category_id: int) -> Category | None:
    return db.session.get(Category, category_id)


def _store_category_images(
    category: Category,
    image: FileStorage | None,
    background_image: FileStorage | None,
) -> None:
    if image is not None:
        delete_blob(category.image_path)
        category.image, category.image_path = save_upload(
            image, folder="categories", owner_code=category.category_code, slot="image"
        )
    if background_image is not None:
        delete_blob(category.background_image_path)
        category.background_image, category.background_image_path = save_upload(
            background_image, folder="categories", owner_code=category.category_code, slot="background"
        )


def create_category(
    *,
    patch: dict,
    image: FileStorage | None = None,
    background_image: FileStorage | None = None,
) -> dict:
    category = Category(category_code=next_code("category"))
    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    db.session.add(category)
    db.session.flush()

    _store_category_images(category, image, background_image)

    db.session.commit()
    return category.to_dict()


def update_category(
    *,
    category_id: int,
    patch: dict,
    image: FileStorage | None = None,
    background_image: FileStorage | None = None,
    remove_image: bool = False,
    remove_background: bool = False,
) -> dict | None:
    category = get_category(category_id)
    if category is None:
        return None

    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)

    if remove_image and image is None:
        delete_blob(category.image_path)
        category.image = None
        category.image_path = None
    if remove_background and background_image is None:
        delete_blob(category.background_image_path)
        category.background_image = None
        category.background_image_path = None

    _store_category_images(category, image, background_image)

    db.session.commit()
    return category.to_dict()


def delete_category(*, category_id: int) -> bool:
    """
    Delete a category and its images.

    Refuses while products or subcategories still reference it, so the
    kiosk never shows orphaned items.
    """
    category = get_category(category_id)
    if category is None:
        return False

    product_count = db.session.query(Product).filter_by(category_id=category_id).count()
    sub_count = db.session.query(Subcategory).filter_by(category_id=category_id).count()
    if product_count or sub_count:
        raise CatalogError(
            "Category still has products or subcategories",
            details={"products": product_count, "subcategories": sub_count},
        )

    delete_blob(category.image_path)
    delete_blob(category.background_image_path)

    # Drop the id from the ordering and non-member settings
    order = [cid for cid in settings_service.get_category_order() if cid != category_id]
    settings_service.set_setting(settings_service.SETTING_CATEGORY_ORDER, order)
    visible = [cid for cid in settings_service.get_non_member_categories() if cid != category_id]
    settings_service.set_setting(settings_service.SETTING_NON_MEMBER_CATEGORIES, visible)

    db.session.delete(category)
    db.session.commit()
    return True


def save_category_order(order: list[int], user_id: int | None = None) -> list[int]:
    row = settings_service.set_setting(settings_service.SETTING_CATEGORY_ORDER, order, user_id)
    db.session.commit()
    return row.value


def visible_category_ids(*, customer: Customer | None, is_no_member: bool) -> set[int] | None:
    """
    Category ids the current kiosk customer may browse.

    Returns None when every active category is visible (member with no
    restriction list), or a set (possibly empty) otherwise.
    """
    if customer is not None:
        allowed = customer.allowed_categories or []
        if not allowed:
            return None
        return {int(c) for c in allowed}
    if is_no_member:
        return set(settings_service.get_non_member_categories())
    return set()


def list_visible_categories(*, customer: Customer | None, is_no_member: bool) -> list[dict]:
    visible = visible_category_ids(customer=customer, is_no_member=is_no_member)
    categories = list_categories(active_only=True)
    if visible is None:
        return categories
    return [c for c in categories if c["id"] in visible]


# =============================================================================
# Subcategories
# =============================================================================

def list_subcategories(*, category_id: int | None = None, active_only: bool = False) -> list[dict]:
    query = db.session.query(Subcategory)
    if category_id is not None:
        query = query.filter(Subcategory.category_id == category_id)
    if active_only:
        query = query.filter(Subcategory.is_active.is_(True))
    query = query.order_by(Subcategory.sort_order.asc(), Subcategory.name.asc(), Subcategory.id.asc())
    return [s.to_dict() for s in query.all()]


def create_subcategory(*, patch: dict, image: FileStorage | None = None) -> dict:
    if get_category(patch.get("category_id")) is None:
        raise CatalogError("Category not found")

    sub = Subcategory(subcategory_code=next_code("subcategory"))
    _apply_patch(sub, patch, SUBCATEGORY_MUTABLE_FIELDS)
    db.session.add(sub)
    db.session.flush()

    if image is not None:
        sub.image, sub.image_path = save_upload(image, folder="subcategories", owner_code=sub.subcategory_code)

    db.session.commit()
    return sub.to_dict()


def update_subcategory(*, subcategory_id: int, patch: dict, image: FileStorage | None = None) -> dict | None:
    sub = db.session.get(Subcategory, subcategory_id)
    if sub is None:
        return None
    if "category_id" in patch and get_category(patch["category_id"]) is None:
        raise CatalogError("Category not found")

    _apply_patch(sub, patch, SUBCATEGORY_MUTABLE_FIELDS)
    if image is not None:
        delete_blob(sub.image_path)
        sub.image, sub.image_path = save_upload(image, folder="subcategories", owner_code=sub.subcategory_code)

    db.session.commit()
    return sub.to_dict()


def delete_subcategory(*, subcategory_id: int) -> bool:
    sub = db.session.get(Subcategory, subcategory_id)
    if sub is None:
        return False
    if db.session.query(Product).filter_by(subcategory_id=subcategory_id).count():
        raise CatalogError("Subcategory still has products")
    delete_blob(sub.image_path)
    db.session.delete(sub)
    db.session.commit()
    return True


# =============================================================================
# Products
# =============================================================================

def list_products(
    *,
    category_id: int | None = None,
    subcategory_id: int | None = None,
    active_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional filters and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    if subcategory_id is not None:
        base_query = base_query.filter(Product.subcategory_id == subcategory_id)
    if active_only:
        base_query = base_query.filter(Product.is_active.is_(True))
    base_query = base_query.order_by(Product.sort_order.asc(), Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def _check_product_refs(patch: dict) -> None:
    if patch.get("category_id") is not None and get_category(patch["category_id"]) is None:
        raise CatalogError("Category not found")
    if patch.get("subcategory_id") is not None:
        sub = db.session.get(Subcategory, patch["subcategory_id"])
        if sub is None:
            raise CatalogError("Subcategory not found")
        if patch.get("category_id") is not None and sub.category_id != patch["category_id"]:
            raise CatalogError("Subcategory does not belong to category")


def create_product(*, patch: dict, image: FileStorage | None = None) -> dict:
    _check_product_refs(patch)

    product = Product(product_code=next_code("product"))
    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
    product.has_variants = bool(product.variants)
    db.session.add(product)
    db.session.flush()

    if image is not None:
        product.main_image, product.main_image_path = save_upload(
            image, folder="products", owner_code=product.product_code
        )

    db.session.commit()
    return product.to_dict()


def update_product(*, product_id: int, patch: dict, image: FileStorage | None = None) -> dict | None:
    product = get_product(product_id)
    if product is None:
        return None
    _check_product_refs(patch)

    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
    if "variants" in patch:
        product.has_variants = bool(product.variants)
    if image is not None:
        delete_blob(product.main_image_path)
        product.main_image, product.main_image_path = save_upload(
            image, folder="products", owner_code=product.product_code
        )

    db.session.commit()
    return product.to_dict()


def delete_product(*, product_id: int) -> bool:
    """
    Soft-delete: products referenced by orders or stock movements stay in
    the table but are hidden from the kiosk.
    """
    product = get_product(product_id)
    if product is None:
        return False
    if product.stock_movements:
        product.is_active = False
    else:
        delete_blob(product.main_image_path)
        db.session.delete(product)
    db.session.commit()
    return True


def product_stats() -> dict:
    total = db.session.query(Product).count()
    active = db.session.query(Product).filter(Product.is_active.is_(True)).count()
    with_variants = db.session.query(Product).filter(Product.has_variants.is_(True)).count()
    return {"total": total, "active": active, "inactive": total - active, "with_variants": with_variants}


# =============================================================================
# Pricing
# =============================================================================

def unit_price_cents(product: Product, *, is_member: bool, selections: dict[str, str] | None = None) -> int:
    """
    Price of one unit for this customer.

    Members pay member_price_cents when set. For variant products, the
    selected options replace the base price (sum over selected options);
    an option's member price only applies when it is lower than its price.
    """
    selections = selections or {}
    if product.has_variants and selections:
        total = 0
        for variant_id, option_id in selections.items():
            option = product.find_option(variant_id, option_id)
            if option is None:
                raise CatalogError(
                    "Unknown variant option",
                    details={"variant_id": variant_id, "option_id": option_id},
                )
            price = option.get("price_cents") or 0
            member_price = option.get("member_price_cents")
            if is_member and member_price is not None and member_price < price:
                price = member_price
            total += price
        return total

    if is_member and product.member_price_cents is not None:
        return product.member_price_cents
    return product.price_cents
