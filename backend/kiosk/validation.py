# Overview: Payload validation for admin writes; column coercion plus per-model business rules.

"""
Validation

Admin routes pass request bodies through validate_payload() with the
policy for their model. A policy names the writable fields, the fields a
create must carry, and the business rules the cleaned patch must satisfy:

    PRODUCT_POLICY = ModelValidationPolicy(
        writable_fields={...},
        required_on_create={"name", "category_id", "price_cents"},
        rules=(check_product,),
    )

Money is integer cents. Percentage cashback is basis points.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import JSON, Boolean, Integer, String, Text


# 9,999,999.99 baht
MAX_PRICE_CENTS = 999_999_999

# 10000 = 100%
MAX_CASHBACK_BPS = 10_000

CASHBACK_TYPES = {"percentage", "fixed"}
BACKGROUND_FITS = {"contain", "cover", "fill"}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate category rule)."""


Rule = Callable[[dict], None]


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: set[str]
    required_on_create: frozenset[str] | set[str] = frozenset()
    rules: tuple[Rule, ...] = ()


def _as_int(key: str, value: Any) -> int:
    # JSON floats and "1e3" style strings are refused; cents are exact
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{key} must be an integer")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false", "1", "0"):
        return value.lower() in ("true", "1")
    raise ValidationError(f"{key} must be true or false")


def _clean(column, value: Any) -> Any:
    key = column.key
    coltype = column.type

    if value is None:
        if not column.nullable:
            raise ValidationError(f"{key} cannot be null")
        return None

    if isinstance(coltype, Boolean):
        return _as_bool(key, value)
    if isinstance(coltype, Integer):
        return _as_int(key, value)
    if isinstance(coltype, JSON):
        if not isinstance(value, (list, dict)):
            raise ValidationError(f"{key} must be a list or object")
        return value
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if text == "" and not column.nullable:
            raise ValidationError(f"{key} cannot be blank")
        if isinstance(coltype, String) and coltype.length and len(text) > coltype.length:
            raise ValidationError(f"{key} exceeds max length {coltype.length}")
        return text
    return value


def validate_payload(*, model, payload: dict | None, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Clean a JSON body for `model`.

    partial=False is a create: every required field must be present.
    partial=True is an update: only the fields sent are checked.
    Returns the patch with values coerced to their column types.
    """
    payload = {} if payload is None else payload
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(set(policy.required_on_create) - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")
        patch[key] = _clean(columns[key], raw)

    for rule in policy.rules:
        rule(patch)
    return patch


# =============================================================================
# Business rules
# =============================================================================

def _money(patch: dict, key: str) -> None:
    value = patch.get(key)
    if value is None:
        return
    if not 0 <= value <= MAX_PRICE_CENTS:
        raise ValidationError(f"{key} must be between 0 and {MAX_PRICE_CENTS}")


def _variant_price(option: dict, key: str, required: bool) -> None:
    price = option.get(key)
    if price is None and not required:
        return
    if isinstance(price, bool) or not isinstance(price, int) or price < 0:
        raise ValidationError(f"variant option {key} must be a non-negative integer")


def check_variants(variants: Any) -> None:
    """[{variant_id, name, options: [{option_id, name, price_cents, member_price_cents?}]}]"""
    if not isinstance(variants, list):
        raise ValidationError("variants must be a list")
    for variant in variants:
        if not isinstance(variant, dict) or not variant.get("variant_id"):
            raise ValidationError("each variant requires a variant_id")
        for option in variant.get("options") or []:
            if not isinstance(option, dict) or not option.get("option_id"):
                raise ValidationError("each variant option requires an option_id")
            _variant_price(option, "price_cents", required=True)
            _variant_price(option, "member_price_cents", required=False)


def check_product(patch: dict) -> None:
    for key in ("price_cents", "member_price_cents", "cashback_min_purchase_cents"):
        _money(patch, key)

    if "cashback_type" in patch and patch["cashback_type"] not in CASHBACK_TYPES:
        raise ValidationError("cashback_type must be 'percentage' or 'fixed'")

    value = patch.get("cashback_value")
    if value is not None:
        if value < 0:
            raise ValidationError("cashback_value must be >= 0")
        if patch.get("cashback_type") == "percentage" and value > MAX_CASHBACK_BPS:
            raise ValidationError(f"cashback_value cannot exceed {MAX_CASHBACK_BPS} bps")

    if (patch.get("quantity") or 0) < 0:
        raise ValidationError("quantity must be >= 0")

    if patch.get("variants") is not None:
        check_variants(patch["variants"])


def check_category(patch: dict) -> None:
    if "background_fit" in patch and patch["background_fit"] not in BACKGROUND_FITS:
        raise ValidationError("background_fit must be 'contain', 'cover' or 'fill'")


def check_cashback_rule(patch: dict) -> None:
    rate = patch.get("rate_bps")
    if rate is not None and not 0 <= rate <= MAX_CASHBACK_BPS:
        raise ValidationError(f"rate_bps must be between 0 and {MAX_CASHBACK_BPS}")


def check_joint_option(patch: dict) -> None:
    for key in ("price_cents", "price_per_gram_cents", "capacity_dg"):
        if (patch.get(key) or 0) < 0:
            raise ValidationError(f"{key} must be >= 0")
