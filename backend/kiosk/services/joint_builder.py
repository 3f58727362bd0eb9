# Overview: Custom joint configurator rules; filter compatibility, dosage, validation, pricing.

"""
Custom Joint Builder Rules

A custom joint is configured in four steps: paper, filter, filling
(flower / hash / worm / tobacco) and one optional external top-up
(coating or wrap). Everything in this module is pure: configurations are
plain dataclasses and the catalog lookup happens in joint_option_service.

Weights are grams (floats, displayed to 0.1 g); prices are integer cents.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


# =============================================================================
# CONSTANTS
# =============================================================================

PAPER_PRE_ROLLED = "pre-rolled-ck"
PAPER_HEMP_WRAP = "hemp-wrap"
PAPER_GOLDEN = "golden-paper"
PAPER_CUSTOM = "custom-paper"
PAPER_TYPES = (PAPER_PRE_ROLLED, PAPER_HEMP_WRAP, PAPER_GOLDEN, PAPER_CUSTOM)

FILTER_PAPER_SMALL = "paper-small"
FILTER_PAPER_MEDIUM = "paper-medium"
FILTER_PAPER_LARGE = "paper-large"
FILTER_GLASS_10MM = "glass-10mm"
FILTER_GLASS_12MM = "glass-12mm"

# Filter length in cm (used for custom paper fill space)
FILTER_LENGTHS = {
    FILTER_PAPER_SMALL: 2.0,
    FILTER_PAPER_MEDIUM: 3.5,
    FILTER_PAPER_LARGE: 5.0,
    FILTER_GLASS_10MM: 2.0,
    FILTER_GLASS_12MM: 2.0,
}

FILTER_NAMES = {
    FILTER_PAPER_SMALL: "Paper Filter (Small)",
    FILTER_PAPER_MEDIUM: "Paper Filter (Medium)",
    FILTER_PAPER_LARGE: "Paper Filter (Large)",
    FILTER_GLASS_10MM: "Glass Filter (10mm)",
    FILTER_GLASS_12MM: "Glass Filter (12mm)",
}

PAPER_FILTERS = (FILTER_PAPER_SMALL, FILTER_PAPER_MEDIUM, FILTER_PAPER_LARGE)

PRE_ROLLED_WEIGHTS = (0.4, 0.8, 1.2)
HEMP_WRAP_WEIGHTS = (1.5, 2.0)
GOLDEN_PAPER_BASE_WEIGHT = 1.0

# 18 cm of effective fill space holds 7.0 g
REFERENCE_FILL_LENGTH_CM = 18
REFERENCE_FILL_WEIGHT_G = 7.0

TOP_UP_MIN_G = 0.3
TOP_UP_MAX_G = 1.2
SPIRAL_TOP_UP_MIN_G = 0.5
TOP_UP_STEP_G = 0.1

# One cigarette (~1 g tobacco) per 0.5 g of hash
TOBACCO_G_PER_HASH_UNIT = 1.0
HASH_UNIT_G = 0.5
TOBACCO_TOLERANCE = 0.95

CAPACITY_TOLERANCE = 0.10

SUGGESTED_DOSAGES = (
    (23, 7.0),
    (20, 6.0),
    (18, 5.2),
    (15, 4.0),
    (10, 2.5),
    (5, 1.0),
)


# =============================================================================
# Configuration types
# =============================================================================

@dataclass
class PaperChoice:
    type: str
    name: str = ""
    price_cents: int = 0
    capacity: Optional[float] = None
    custom_length: Optional[float] = None


@dataclass
class FilterChoice:
    type: str
    name: str = ""
    price_cents: int = 0


@dataclass
class FillingPortion:
    name: str
    weight: float
    price_per_gram_cents: int = 0


@dataclass
class AddOn:
    """Worm, coating or wrap: flat-priced extra."""
    name: str
    type: str = ""
    price_cents: int = 0
    weight: float = 0.0


@dataclass
class Filling:
    flower: list[FillingPortion] = field(default_factory=list)
    hash: list[FillingPortion] = field(default_factory=list)
    worm: Optional[AddOn] = None
    tobacco: float = 0.0
    total_capacity: Optional[float] = None


@dataclass
class External:
    coating: Optional[AddOn] = None
    wrap: Optional[AddOn] = None


@dataclass
class JointConfig:
    paper: Optional[PaperChoice] = None
    filter: Optional[FilterChoice] = None
    filling: Filling = field(default_factory=Filling)
    external: External = field(default_factory=External)

    @classmethod
    def from_dict(cls, data: dict) -> "JointConfig":
        data = data or {}
        paper = data.get("paper")
        filt = data.get("filter")
        filling = data.get("filling") or {}
        external = data.get("external") or {}

        def _portion(p: dict) -> FillingPortion:
            return FillingPortion(
                name=p.get("name", ""),
                weight=float(p.get("weight") or 0),
                price_per_gram_cents=int(p.get("price_per_gram_cents") or 0),
            )

        def _addon(a: dict | None) -> AddOn | None:
            if not a:
                return None
            return AddOn(
                name=a.get("name", ""),
                type=a.get("type", ""),
                price_cents=int(a.get("price_cents") or 0),
                weight=float(a.get("weight") or 0),
            )

        return cls(
            paper=PaperChoice(
                type=paper.get("type", ""),
                name=paper.get("name", ""),
                price_cents=int(paper.get("price_cents") or 0),
                capacity=paper.get("capacity"),
                custom_length=paper.get("custom_length"),
            ) if paper else None,
            filter=FilterChoice(
                type=filt.get("type", ""),
                name=filt.get("name", ""),
                price_cents=int(filt.get("price_cents") or 0),
            ) if filt else None,
            filling=Filling(
                flower=[_portion(p) for p in filling.get("flower") or []],
                hash=[_portion(p) for p in filling.get("hash") or []],
                worm=_addon(filling.get("worm")),
                tobacco=float(filling.get("tobacco") or 0),
                total_capacity=filling.get("total_capacity"),
            ),
            external=External(
                coating=_addon(external.get("coating")),
                wrap=_addon(external.get("wrap")),
            ),
        )

    def to_dict(self) -> dict:
        def _addon(a: AddOn | None) -> dict | None:
            if a is None:
                return None
            return {"name": a.name, "type": a.type, "price_cents": a.price_cents, "weight": a.weight}

        def _portion(p: FillingPortion) -> dict:
            return {"name": p.name, "weight": p.weight, "price_per_gram_cents": p.price_per_gram_cents}

        return {
            "paper": {
                "type": self.paper.type,
                "name": self.paper.name,
                "price_cents": self.paper.price_cents,
                "capacity": self.paper.capacity,
                "custom_length": self.paper.custom_length,
            } if self.paper else None,
            "filter": {
                "type": self.filter.type,
                "name": self.filter.name,
                "price_cents": self.filter.price_cents,
            } if self.filter else None,
            "filling": {
                "flower": [_portion(p) for p in self.filling.flower],
                "hash": [_portion(p) for p in self.filling.hash],
                "worm": _addon(self.filling.worm),
                "tobacco": self.filling.tobacco,
                "total_capacity": self.filling.total_capacity,
            },
            "external": {
                "coating": _addon(self.external.coating),
                "wrap": _addon(self.external.wrap),
            },
        }


def _round_g(value: float) -> float:
    return round(value + 1e-9, 1)


# =============================================================================
# Conflict rules
# =============================================================================

def is_filter_allowed(paper_type: str, filter_type: str, joint_length: float | None = None) -> bool:
    if paper_type == PAPER_PRE_ROLLED:
        # Cones have a built-in filter
        return False
    if paper_type == PAPER_HEMP_WRAP:
        return filter_type == FILTER_GLASS_12MM or filter_type in PAPER_FILTERS
    if paper_type == PAPER_GOLDEN:
        return filter_type == FILTER_GLASS_10MM or filter_type in PAPER_FILTERS
    if paper_type == PAPER_CUSTOM:
        if not joint_length:
            return False
        if joint_length <= 12:
            return filter_type in (FILTER_PAPER_SMALL, FILTER_GLASS_10MM)
        if joint_length <= 16:
            return filter_type == FILTER_PAPER_MEDIUM
        return filter_type == FILTER_PAPER_LARGE
    return True


def get_available_filters(paper_type: str, joint_length: float | None = None) -> list[dict]:
    return [
        {"type": ftype, "name": FILTER_NAMES[ftype], "length": length}
        for ftype, length in FILTER_LENGTHS.items()
        if is_filter_allowed(paper_type, ftype, joint_length)
    ]


def are_internal_options_allowed(paper_type: str) -> bool:
    """Worm / rosin donut cannot go into a pre-rolled cone."""
    return paper_type != PAPER_PRE_ROLLED


def is_tobacco_required(filling: Filling) -> bool:
    """Hash-only joints (no flower, no worm) need tobacco."""
    return bool(filling.hash) and not filling.flower and filling.worm is None


def calculate_required_tobacco(filling: Filling) -> float:
    if not is_tobacco_required(filling):
        return 0.0
    total_hash = sum(h.weight for h in filling.hash)
    return total_hash / HASH_UNIT_G * TOBACCO_G_PER_HASH_UNIT


# =============================================================================
# Dosage
# =============================================================================

def get_filter_length_for_custom_paper(joint_length: float) -> float:
    if joint_length <= 12:
        return FILTER_LENGTHS[FILTER_PAPER_SMALL]
    if joint_length <= 16:
        return FILTER_LENGTHS[FILTER_PAPER_MEDIUM]
    return FILTER_LENGTHS[FILTER_PAPER_LARGE]


def calculate_internal_capacity(effective_fill_space: float) -> float:
    return effective_fill_space / REFERENCE_FILL_LENGTH_CM * REFERENCE_FILL_WEIGHT_G


def get_custom_paper_dosage(joint_length: float) -> dict:
    filter_length = get_filter_length_for_custom_paper(joint_length)
    effective = joint_length - filter_length
    return {
        "total_length": joint_length,
        "filter_length": filter_length,
        "effective_space": effective,
        "internal_capacity": _round_g(calculate_internal_capacity(effective)),
        "min_top_up": TOP_UP_MIN_G,
        "max_top_up": TOP_UP_MAX_G,
    }


def get_paper_dosage(paper_type: str, joint_length: float | None = None) -> dict:
    """Dosage table shown by the builder for a paper type."""
    if paper_type == PAPER_PRE_ROLLED:
        return {"weights": list(PRE_ROLLED_WEIGHTS)}
    if paper_type == PAPER_HEMP_WRAP:
        return {"standard_weights": list(HEMP_WRAP_WEIGHTS), "min_top_up": TOP_UP_MIN_G, "max_top_up": TOP_UP_MAX_G}
    if paper_type == PAPER_GOLDEN:
        return {"base_weight": GOLDEN_PAPER_BASE_WEIGHT, "min_top_up": TOP_UP_MIN_G, "max_top_up": TOP_UP_MAX_G}
    if paper_type == PAPER_CUSTOM and joint_length:
        return get_custom_paper_dosage(joint_length)
    return {}


def get_top_up_dosage() -> dict:
    return {
        "standard": {"min": TOP_UP_MIN_G, "max": TOP_UP_MAX_G, "step": TOP_UP_STEP_G},
        "spiral": {"min": SPIRAL_TOP_UP_MIN_G, "max": TOP_UP_MAX_G, "step": TOP_UP_STEP_G},
    }


def get_suggested_dosages() -> list[dict]:
    return [{"length": length, "suggested_fill": fill} for length, fill in SUGGESTED_DOSAGES]


def calculate_total_filling(filling: Filling) -> float:
    """Flower + hash. The worm sits in the center and takes no capacity."""
    total = sum(f.weight for f in filling.flower) + sum(h.weight for h in filling.hash)
    return _round_g(total)


def max_capacity(paper: PaperChoice, filling: Filling) -> float:
    paper_type = paper.type or ""
    capacity = paper.capacity
    if "pre-rolled" in paper_type:
        return filling.total_capacity or capacity or PRE_ROLLED_WEIGHTS[0]
    if "hemp" in paper_type:
        return filling.total_capacity or capacity or HEMP_WRAP_WEIGHTS[-1]
    if "golden" in paper_type or "standard" in paper_type or "glass" in paper_type:
        return capacity or GOLDEN_PAPER_BASE_WEIGHT
    if "custom" in paper_type:
        if capacity:
            return capacity
        if paper.custom_length:
            return get_custom_paper_dosage(paper.custom_length)["internal_capacity"]
        return 0.0
    return capacity or 0.0


def validate_filling_capacity(paper: PaperChoice, filling: Filling) -> dict:
    limit = max_capacity(paper, filling)
    current = calculate_total_filling(filling)
    return {
        "is_valid": current <= limit * (1 + CAPACITY_TOLERANCE),
        "current_fill": current,
        "max_capacity": limit,
        "remaining": max(0.0, _round_g(limit - current)),
    }


# =============================================================================
# Validation & pricing
# =============================================================================

def validate_configuration(config: JointConfig) -> dict:
    """Collect every problem with a configuration. Valid when errors is empty."""
    errors = []

    if config.paper is None:
        errors.append("Please select a paper type")
    elif config.paper.type != PAPER_PRE_ROLLED and config.filter is None:
        errors.append("Please select a filter")

    filling = config.filling
    if not filling.flower and not filling.hash:
        errors.append("Please add at least some flower or hash")

    if config.paper is not None and config.filter is not None:
        if not is_filter_allowed(config.paper.type, config.filter.type, config.paper.custom_length):
            errors.append(f"{config.filter.name or config.filter.type} is not available for this paper")

    if config.paper is not None and filling.worm is not None:
        if not are_internal_options_allowed(config.paper.type):
            errors.append("Internal options are not available for pre-rolled cones")

    if is_tobacco_required(filling):
        required = calculate_required_tobacco(filling)
        if filling.tobacco < required * TOBACCO_TOLERANCE:
            errors.append(f"Hash-only joint requires {required:.1f}g of tobacco")

    if config.paper is not None:
        capacity = validate_filling_capacity(config.paper, filling)
        if not capacity["is_valid"]:
            errors.append(
                f"Filling exceeds capacity ({capacity['current_fill']:g}g / {capacity['max_capacity']:g}g)"
            )

    external_count = sum(1 for e in (config.external.coating, config.external.wrap) if e is not None)
    if external_count > 1:
        errors.append("Only one external top-up is allowed")

    return {"is_valid": not errors, "errors": errors}


def calculate_total_price(config: JointConfig) -> int:
    total = 0
    if config.paper is not None:
        total += config.paper.price_cents
    if config.filter is not None:
        total += config.filter.price_cents
    for portion in config.filling.flower + config.filling.hash:
        total += round(portion.price_per_gram_cents * portion.weight)
    if config.filling.worm is not None:
        total += config.filling.worm.price_cents
    for addon in (config.external.coating, config.external.wrap):
        if addon is not None:
            total += addon.price_cents
    return total


def describe_configuration(config: JointConfig) -> list[str]:
    """Detail lines shown under the cart item."""
    details = []
    if config.paper is not None:
        length = f" ({config.paper.custom_length:g}cm)" if config.paper.custom_length else ""
        details.append(f"Paper: {config.paper.name}{length}")
        capacity = max_capacity(config.paper, config.filling)
        details.append(f"Capacity: {capacity:.1f}g")
    if config.filter is not None:
        details.append(f"Filter: {config.filter.name}")
    if config.filling.worm is not None:
        details.append(f"Worm: {config.filling.worm.name}")
    for f in config.filling.flower:
        details.append(f"Flower: {f.name} ({f.weight:.1f}g)")
    for h in config.filling.hash:
        details.append(f"Hash: {h.name} ({h.weight:.1f}g)")
    if config.filling.tobacco:
        details.append(f"Tobacco: {config.filling.tobacco:.1f}g")
    if config.external.coating is not None:
        details.append(f"Coating: {config.external.coating.name}")
    if config.external.wrap is not None:
        details.append(f"Wrap: {config.external.wrap.name}")
    return details
