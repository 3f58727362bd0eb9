from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z


class Category(db.Model):
    """
    Menu category shown on the kiosk home screen.

    WHY: Categories drive the kiosk navigation. Members see the categories
    listed on their account; No-Member customers see the categories
    configured in the non_member_categories setting.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("category_code", name="uq_categories_code"),
        db.Index("ix_categories_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable code (e.g., "CAT-001")
    category_code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Optional special page rendered instead of the product grid (e.g., "prerolls", "joint-builder")
    special_page = db.Column(db.String(64), nullable=True)

    text_color = db.Column(db.String(16), nullable=False, default="#000000")
    image = db.Column(db.String(512), nullable=True)
    image_path = db.Column(db.String(512), nullable=True)
    background_image = db.Column(db.String(512), nullable=True)
    background_image_path = db.Column(db.String(512), nullable=True)
    background_fit = db.Column(db.String(16), nullable=False, default="contain")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_code": self.category_code,
            "name": self.name,
            "description": self.description,
            "special_page": self.special_page,
            "text_color": self.text_color,
            "image": self.image,
            "image_path": self.image_path,
            "background_image": self.background_image,
            "background_image_path": self.background_image_path,
            "background_fit": self.background_fit,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Subcategory(db.Model):
    """Second navigation level under a category."""
    __tablename__ = "subcategories"
    __table_args__ = (
        db.UniqueConstraint("subcategory_code", name="uq_subcategories_code"),
        db.Index("ix_subcategories_category_sort", "category_id", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    subcategory_code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    text_color = db.Column(db.String(16), nullable=False, default="#000000")
    image = db.Column(db.String(512), nullable=True)
    image_path = db.Column(db.String(512), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("subcategories", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "subcategory_code": self.subcategory_code,
            "name": self.name,
            "description": self.description,
            "text_color": self.text_color,
            "image": self.image,
            "image_path": self.image_path,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Sellable kiosk product.

    PRICING: price_cents is the No-Member price. member_price_cents (when set)
    is what identified members pay. Variant options carry their own prices.

    CASHBACK: Product-level cashback overrides the category rule.
    - cashback_type "percentage": cashback_value is basis points of the line total
    - cashback_type "fixed": cashback_value is cents per unit
    - cashback_min_purchase_cents: line total below this earns nothing

    STOCK: quantity is informational. alert_kiosk_level enables stock checks
    on the kiosk (NULL means the product is sold without limit).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("product_code", name="uq_products_code"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        db.Index("ix_products_subcategory_active", "subcategory_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_code = db.Column(db.String(32), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    subcategory_id = db.Column(db.Integer, db.ForeignKey("subcategories.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    member_price_cents = db.Column(db.Integer, nullable=True)

    has_variants = db.Column(db.Boolean, nullable=False, default=False)
    # [{"variant_id", "name", "options": [{"option_id", "name", "price_cents", "member_price_cents", "image"}]}]
    variants = db.Column(db.JSON, nullable=True)

    cashback_enabled = db.Column(db.Boolean, nullable=False, default=False)
    cashback_type = db.Column(db.String(16), nullable=False, default="percentage")
    cashback_value = db.Column(db.Integer, nullable=False, default=0)
    cashback_min_purchase_cents = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    alert_kiosk_level = db.Column(db.Integer, nullable=True)

    # Item id in the external POS (used for stock checks)
    pos_item_id = db.Column(db.String(64), nullable=True)

    main_image = db.Column(db.String(512), nullable=True)
    main_image_path = db.Column(db.String(512), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    subcategory = db.relationship("Subcategory", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def find_option(self, variant_id: str, option_id: str) -> dict | None:
        for variant in self.variants or []:
            if variant.get("variant_id") != variant_id:
                continue
            for option in variant.get("options") or []:
                if option.get("option_id") == option_id:
                    return option
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_code": self.product_code,
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "member_price_cents": self.member_price_cents,
            "has_variants": self.has_variants,
            "variants": self.variants or [],
            "cashback_enabled": self.cashback_enabled,
            "cashback_type": self.cashback_type,
            "cashback_value": self.cashback_value,
            "cashback_min_purchase_cents": self.cashback_min_purchase_cents,
            "quantity": self.quantity,
            "alert_kiosk_level": self.alert_kiosk_level,
            "pos_item_id": self.pos_item_id,
            "main_image": self.main_image,
            "main_image_path": self.main_image_path,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class CashbackRule(db.Model):
    """
    Category-level cashback percentage.

    WHY: Products without their own cashback configuration fall back to the
    rule of their category. One rule per category.
    """
    __tablename__ = "cashback_rules"
    __table_args__ = (
        db.UniqueConstraint("category_id", name="uq_cashback_rules_category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    rate_bps = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("cashback_rule", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "rate_bps": self.rate_bps,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
