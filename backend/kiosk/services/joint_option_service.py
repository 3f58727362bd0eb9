# Overview: Service-layer operations for the joint builder option catalog and server-side pricing.

"""
Joint Option Service

WHY: The kiosk sends option ids and weights only. Names, types and prices
are resolved here from the joint_options catalog, so a client can never
price its own joint.
"""
from __future__ import annotations

from ..extensions import db
from ..models import JointOption
from . import joint_builder
from .joint_builder import (
    JointConfig, PaperChoice, FilterChoice, FillingPortion, AddOn, Filling, External,
)


OPTION_KINDS = ("paper", "filter", "filling", "external")
FILLING_TYPES = ("flower", "hash", "worm")
EXTERNAL_TYPES = ("coating", "wrap")

OPTION_MUTABLE_FIELDS = {
    "kind", "option_type", "name", "description", "price_cents", "price_per_gram_cents",
    "capacity_dg", "image", "sort_order", "is_active",
}


class JointOptionError(Exception):
    """Raised for joint option errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _check_kind(kind: str, option_type: str) -> None:
    if kind not in OPTION_KINDS:
        raise JointOptionError(f"Unknown option kind: {kind}")
    allowed = {
        "paper": joint_builder.PAPER_TYPES,
        "filter": tuple(joint_builder.FILTER_LENGTHS),
        "filling": FILLING_TYPES,
        "external": EXTERNAL_TYPES,
    }[kind]
    if option_type not in allowed:
        raise JointOptionError(
            f"Unknown {kind} type: {option_type}",
            details={"allowed": list(allowed)},
        )


# =============================================================================
# Catalog CRUD
# =============================================================================

def list_options(*, kind: str | None = None, active_only: bool = False) -> list[dict]:
    query = db.session.query(JointOption)
    if kind:
        query = query.filter(JointOption.kind == kind)
    if active_only:
        query = query.filter(JointOption.is_active.is_(True))
    query = query.order_by(JointOption.kind.asc(), JointOption.sort_order.asc(), JointOption.id.asc())
    return [o.to_dict() for o in query.all()]


def kiosk_catalog() -> dict:
    """Active options grouped the way the builder steps consume them."""
    grouped: dict[str, list] = {kind: [] for kind in OPTION_KINDS}
    for option in list_options(active_only=True):
        grouped[option["kind"]].append(option)
    grouped["top_up_dosage"] = joint_builder.get_top_up_dosage()
    grouped["suggested_dosages"] = joint_builder.get_suggested_dosages()
    return grouped


def create_option(*, patch: dict) -> dict:
    _check_kind(patch.get("kind"), patch.get("option_type"))
    option = JointOption()
    for k, v in patch.items():
        if k in OPTION_MUTABLE_FIELDS:
            setattr(option, k, v)
    db.session.add(option)
    db.session.commit()
    return option.to_dict()


def update_option(*, option_id: int, patch: dict) -> dict | None:
    option = db.session.get(JointOption, option_id)
    if option is None:
        return None
    _check_kind(patch.get("kind", option.kind), patch.get("option_type", option.option_type))
    for k, v in patch.items():
        if k in OPTION_MUTABLE_FIELDS:
            setattr(option, k, v)
    db.session.commit()
    return option.to_dict()


def delete_option(*, option_id: int) -> bool:
    option = db.session.get(JointOption, option_id)
    if option is None:
        return False
    db.session.delete(option)
    db.session.commit()
    return True


# =============================================================================
# Resolution
# =============================================================================

def _load(option_id, kind: str, option_type: str | None = None) -> JointOption:
    option = db.session.get(JointOption, option_id) if option_id is not None else None
    if option is None or not option.is_active or option.kind != kind:
        raise JointOptionError(f"Unknown {kind} option", details={"option_id": option_id})
    if option_type is not None and option.option_type != option_type:
        raise JointOptionError(
            f"Option is not a {option_type}",
            details={"option_id": option_id, "option_type": option.option_type},
        )
    return option


def _weight(raw: dict) -> float:
    try:
        weight = float(raw.get("weight") or 0)
    except (TypeError, ValueError):
        raise JointOptionError("weight must be a number")
    if weight <= 0:
        raise JointOptionError("weight must be > 0")
    return weight


def _object(raw, field: str) -> dict | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise JointOptionError(f"{field} must be an object")
    return raw or None


def _positive_number(raw, field: str) -> float:
    if isinstance(raw, bool):
        raise JointOptionError(f"{field} must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise JointOptionError(f"{field} must be a number")
    if value <= 0:
        raise JointOptionError(f"{field} must be > 0")
    return value


def _paper_capacity(option: JointOption, raw_paper: dict, raw_filling: dict) -> tuple[float | None, float | None, float | None]:
    """
    (capacity, custom_length, cone size) for a paper choice.

    Capacity comes from the catalog. Cones and wraps accept a size picked
    from their standard weights; custom paper derives it from its length.
    """
    size = raw_paper.get("capacity")
    if size is None:
        size = raw_filling.get("total_capacity")

    standard_sizes = {
        joint_builder.PAPER_PRE_ROLLED: joint_builder.PRE_ROLLED_WEIGHTS,
        joint_builder.PAPER_HEMP_WRAP: joint_builder.HEMP_WRAP_WEIGHTS,
    }.get(option.option_type)

    if option.option_type == joint_builder.PAPER_CUSTOM:
        if raw_paper.get("custom_length") is None:
            raise JointOptionError("custom_length is required for custom paper")
        length = _positive_number(raw_paper["custom_length"], "custom_length")
        return joint_builder.get_custom_paper_dosage(length)["internal_capacity"], length, None

    catalog_capacity = option.capacity_dg / 10 if option.capacity_dg is not None else None
    if size is None:
        return catalog_capacity, None, None
    if standard_sizes is None:
        raise JointOptionError(f"{option.name} has a fixed capacity", details={"capacity": catalog_capacity})

    size = _positive_number(size, "capacity")
    if size not in standard_sizes:
        raise JointOptionError(
            f"Unsupported size for {option.name}",
            details={"capacity": size, "allowed": list(standard_sizes)},
        )
    return size, None, size


def resolve_configuration(selection: dict) -> JointConfig:
    """
    Build a priced JointConfig from a kiosk selection:

        {"paper": {"option_id", "custom_length"?, "capacity"?},
         "filter": {"option_id"} | null,
         "filling": {"flower": [{"option_id", "weight"}], "hash": [...],
                     "worm": {"option_id"} | null, "tobacco": 0.0},
         "external": {"coating": {"option_id"} | null, "wrap": {...} | null}}

    "capacity" is the cone or wrap size and must be one of the standard
    weights for that paper.
    """
    selection = _object(selection, "selection") or {}
    raw_filling = _object(selection.get("filling"), "filling") or {}

    paper = None
    cone_size = None
    raw_paper = _object(selection.get("paper"), "paper")
    if raw_paper:
        option = _load(raw_paper.get("option_id"), "paper")
        capacity, custom_length, cone_size = _paper_capacity(option, raw_paper, raw_filling)
        paper = PaperChoice(
            type=option.option_type,
            name=option.name,
            price_cents=option.price_cents,
            capacity=capacity,
            custom_length=custom_length,
        )

    filt = None
    raw_filter = _object(selection.get("filter"), "filter")
    if raw_filter:
        option = _load(raw_filter.get("option_id"), "filter")
        filt = FilterChoice(type=option.option_type, name=option.name, price_cents=option.price_cents)

    portions: dict[str, list[FillingPortion]] = {"flower": [], "hash": []}
    for filling_type in ("flower", "hash"):
        raw_portions = raw_filling.get(filling_type) or []
        if not isinstance(raw_portions, list):
            raise JointOptionError(f"{filling_type} must be a list")
        for raw in raw_portions:
            raw = _object(raw, filling_type) or {}
            option = _load(raw.get("option_id"), "filling", filling_type)
            portions[filling_type].append(FillingPortion(
                name=option.name,
                weight=_weight(raw),
                price_per_gram_cents=option.price_per_gram_cents,
            ))

    worm = None
    raw_worm = _object(raw_filling.get("worm"), "worm")
    if raw_worm:
        option = _load(raw_worm.get("option_id"), "filling", "worm")
        worm = AddOn(name=option.name, type=option.option_type, price_cents=option.price_cents)

    raw_external = _object(selection.get("external"), "external") or {}
    externals = {}
    for ext_type in EXTERNAL_TYPES:
        raw = _object(raw_external.get(ext_type), ext_type)
        externals[ext_type] = None
        if raw:
            option = _load(raw.get("option_id"), "external", ext_type)
            externals[ext_type] = AddOn(name=option.name, type=option.option_type, price_cents=option.price_cents)

    tobacco = 0.0
    if raw_filling.get("tobacco"):
        tobacco = _positive_number(raw_filling["tobacco"], "tobacco")

    return JointConfig(
        paper=paper,
        filter=filt,
        filling=Filling(
            flower=portions["flower"],
            hash=portions["hash"],
            worm=worm,
            tobacco=tobacco,
            total_capacity=cone_size,
        ),
        external=External(coating=externals["coating"], wrap=externals["wrap"]),
    )


DEFAULT_OPTIONS = (
    ("paper", "pre-rolled-ck", "Pre-rolled Cone", 4000, 0, 4),
    ("paper", "hemp-wrap", "Hemp Wrap", 8000, 0, 20),
    ("paper", "golden-paper", "Golden Paper", 15000, 0, 10),
    ("paper", "custom-paper", "Custom Rolling Paper", 5000, 0, None),
    ("filter", "paper-small", "Paper Filter (Small)", 0, 0, None),
    ("filter", "paper-medium", "Paper Filter (Medium)", 0, 0, None),
    ("filter", "paper-large", "Paper Filter (Large)", 0, 0, None),
    ("filter", "glass-10mm", "Glass Filter (10mm)", 15000, 0, None),
    ("filter", "glass-12mm", "Glass Filter (12mm)", 18000, 0, None),
    ("filling", "flower", "House Flower", 0, 25000, None),
    ("filling", "hash", "House Hash", 0, 40000, None),
    ("filling", "worm", "Rosin Worm", 30000, 0, None),
    ("external", "coating", "Kief Coating", 20000, 0, None),
    ("external", "wrap", "Hash Wrap", 30000, 0, None),
)


def seed_default_options() -> int:
    """Create the default option catalog when empty. Returns rows created."""
    if db.session.query(JointOption).count():
        return 0
    for order, (kind, option_type, name, price, per_gram, capacity_dg) in enumerate(DEFAULT_OPTIONS):
        db.session.add(JointOption(
            kind=kind,
            option_type=option_type,
            name=name,
            price_cents=price,
            price_per_gram_cents=per_gram,
            capacity_dg=capacity_dg,
            sort_order=order,
        ))
    db.session.commit()
    return len(DEFAULT_OPTIONS)
