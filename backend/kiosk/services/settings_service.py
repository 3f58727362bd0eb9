# Overview: Service-layer operations for kiosk settings; typed access to the key/value table.

from __future__ import annotations

import re
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import KioskSetting
from ..validation import ValidationError


PAYMENT_METHODS = ("cash", "card", "crypto")

SETTING_TRANSACTION_PREFIX = "transaction_prefix"
SETTING_NON_MEMBER_CATEGORIES = "non_member_categories"
SETTING_CATEGORY_ORDER = "category_order"
SETTING_NON_MEMBER_PAYMENT_METHODS = "non_member_payment_methods"
SETTING_BAHT_TO_USD_RATE = "baht_to_usd_rate"

DEFAULTS: dict[str, Any] = {
    SETTING_NON_MEMBER_CATEGORIES: [],
    SETTING_CATEGORY_ORDER: [],
    SETTING_NON_MEMBER_PAYMENT_METHODS: {"cash": True, "card": False, "crypto": False},
    SETTING_BAHT_TO_USD_RATE: 0.029,
}

_PREFIX_RE = re.compile(r"^[A-Z0-9]{1,10}$")


def _validate_id_list(key: str, value: Any) -> list[int]:
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list of category ids")
    cleaned = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise ValidationError(f"{key} must contain integer ids")
        if item not in cleaned:
            cleaned.append(item)
    return cleaned


def _validate(key: str, value: Any) -> Any:
    if key == SETTING_TRANSACTION_PREFIX:
        prefix = str(value or "").strip().upper()
        if not _PREFIX_RE.match(prefix):
            raise ValidationError("transaction_prefix must be 1-10 letters or digits")
        return prefix
    if key in (SETTING_NON_MEMBER_CATEGORIES, SETTING_CATEGORY_ORDER):
        return _validate_id_list(key, value)
    if key == SETTING_NON_MEMBER_PAYMENT_METHODS:
        if not isinstance(value, dict):
            raise ValidationError("non_member_payment_methods must be an object")
        unknown = set(value) - set(PAYMENT_METHODS)
        if unknown:
            raise ValidationError(f"Unknown payment methods: {', '.join(sorted(unknown))}")
        return {m: bool(value.get(m, False)) for m in PAYMENT_METHODS}
    if key == SETTING_BAHT_TO_USD_RATE:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValidationError("baht_to_usd_rate must be a positive number")
        return float(value)
    raise ValidationError(f"Unknown setting: {key}")


def known_keys() -> list[str]:
    return [SETTING_TRANSACTION_PREFIX, *DEFAULTS.keys()]


def get_setting(key: str, default: Any = None) -> Any:
    row = db.session.query(KioskSetting).filter_by(key=key).first()
    if row is None or row.value is None:
        if default is not None:
            return default
        return DEFAULTS.get(key)
    return row.value


def set_setting(key: str, value: Any, user_id: int | None = None) -> KioskSetting:
    """Validate and upsert one setting. Caller commits."""
    cleaned = _validate(key, value)
    row = db.session.query(KioskSetting).filter_by(key=key).first()
    if row is None:
        row = KioskSetting(key=key)
        db.session.add(row)
    row.value = cleaned
    row.updated_by_user_id = user_id
    db.session.flush()
    return row


def list_settings() -> dict[str, Any]:
    return {key: get_setting(key) for key in known_keys()} | {
        SETTING_TRANSACTION_PREFIX: get_transaction_prefix(),
    }


def get_transaction_prefix() -> str:
    return get_setting(SETTING_TRANSACTION_PREFIX) or current_app.config["DEFAULT_TRANSACTION_PREFIX"]


def get_non_member_categories() -> list[int]:
    return list(get_setting(SETTING_NON_MEMBER_CATEGORIES) or [])


def get_category_order() -> list[int]:
    return list(get_setting(SETTING_CATEGORY_ORDER) or [])


def get_non_member_payment_methods() -> dict[str, bool]:
    value = get_setting(SETTING_NON_MEMBER_PAYMENT_METHODS) or {}
    return {m: bool(value.get(m, False)) for m in PAYMENT_METHODS}


def get_baht_to_usd_rate() -> float:
    return float(get_setting(SETTING_BAHT_TO_USD_RATE))
