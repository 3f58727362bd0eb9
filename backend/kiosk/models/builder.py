from __future__ import annotations

from ..extensions import db
from kiosk.time_utils import to_utc_z


class JointOption(db.Model):
    """
    Selectable option of the custom joint builder.

    KINDS:
    - paper: option_type is a paper type ("pre-rolled-ck", "hemp-wrap", ...)
    - filter: option_type is a filter type ("paper-small", "glass-10mm", ...)
    - filling: option_type is "flower", "hash" or "worm"
    - external: option_type is "coating" or "wrap"

    PRICING: price_cents is a flat price; price_per_gram_cents is used for
    flower and hash fillings.
    """
    __tablename__ = "joint_options"
    __table_args__ = (
        db.Index("ix_joint_options_kind_sort", "kind", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False)
    option_type = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    price_per_gram_cents = db.Column(db.Integer, nullable=False, default=0)

    # Paper capacity in decigrams (e.g., 4 = 0.4 g); NULL uses the paper type default
    capacity_dg = db.Column(db.Integer, nullable=True)

    image = db.Column(db.String(512), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "option_type": self.option_type,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "price_per_gram_cents": self.price_per_gram_cents,
            "capacity_dg": self.capacity_dg,
            "image": self.image,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PrerollType(db.Model):
    """Preroll quality or strain type (kind = "quality" | "strain")."""
    __tablename__ = "preroll_types"
    __table_args__ = (
        db.UniqueConstraint("kind", "type_key", name="uq_preroll_types_kind_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False)
    type_key = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    color = db.Column(db.String(16), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "type_key": self.type_key,
            "name": self.name,
            "color": self.color,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class PrerollSize(db.Model):
    """Preroll size with its default price."""
    __tablename__ = "preroll_sizes"
    __table_args__ = (
        db.UniqueConstraint("size_key", name="uq_preroll_sizes_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    size_key = db.Column(db.String(32), nullable=False)  # small, normal, king
    name = db.Column(db.String(64), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=10000)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "size_key": self.size_key,
            "name": self.name,
            "price_cents": self.price_cents,
            "sort_order": self.sort_order,
        }


class PrerollVariant(db.Model):
    """
    Per quality x strain x size override (price, image, availability).

    WHY: The default price comes from the size; a variant row only exists
    when staff priced or pictured a specific combination.
    """
    __tablename__ = "preroll_variants"
    __table_args__ = (
        db.UniqueConstraint("quality_key", "strain_key", "size_key", name="uq_preroll_variants_combo"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quality_key = db.Column(db.String(64), nullable=False)
    strain_key = db.Column(db.String(64), nullable=False)
    size_key = db.Column(db.String(32), nullable=False)
    price_cents = db.Column(db.Integer, nullable=True)
    image = db.Column(db.String(512), nullable=True)
    image_path = db.Column(db.String(512), nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quality_key": self.quality_key,
            "strain_key": self.strain_key,
            "size_key": self.size_key,
            "price_cents": self.price_cents,
            "image": self.image,
            "image_path": self.image_path,
            "is_available": self.is_available,
            "updated_at": to_utc_z(self.updated_at),
        }
