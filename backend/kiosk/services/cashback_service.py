# Overview: Service-layer operations for cashback; category rules and per-line cashback calculation.

"""
Cashback Service

RULE PRECEDENCE (per cart line):
1. Product-level cashback, when enabled with a positive value
   - a minimum purchase (line total) that is not met earns nothing
   - "percentage": line total x value bps / 10000
   - "fixed": value cents x quantity
2. Otherwise the active category rule: line total x rate bps / 10000
3. Otherwise nothing

Custom joints never earn cashback. No-Member customers earn nothing.
Amounts are integer cents (floored); points = floor(total cents / point value).
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import CashbackRule, Category
from ..validation import ConflictError


class CashbackError(Exception):
    """Raised for cashback rule errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


BPS_DENOMINATOR = 10_000


# =============================================================================
# Calculation (pure)
# =============================================================================

def calculate_line_cashback(line: dict, category_rules: dict[int, int]) -> dict:
    """
    Cashback for one cart line.

    `line` carries unit_price_cents, quantity, category_id, and the product's
    cashback snapshot under "cashback". `category_rules` maps category id to
    active rate in bps.

    Returns {"amount_cents", "source", "rate"} where source is one of
    "product", "category", "minimum_not_met", "none".
    """
    none = {"amount_cents": 0, "source": "none", "rate": 0}
    if line.get("kind") == "custom_joint":
        return none

    total = int(line.get("unit_price_cents", 0)) * int(line.get("quantity", 0))
    cashback = line.get("cashback") or {}

    value = int(cashback.get("value") or 0)
    if cashback.get("enabled") and value > 0:
        min_purchase = cashback.get("min_purchase_cents")
        if min_purchase and total < min_purchase:
            return {"amount_cents": 0, "source": "minimum_not_met", "rate": value}
        if cashback.get("type") == "fixed":
            amount = value * int(line.get("quantity", 0))
        else:
            amount = total * value // BPS_DENOMINATOR
        return {"amount_cents": amount, "source": "product", "rate": value}

    rate = category_rules.get(line.get("category_id"))
    if rate:
        return {"amount_cents": total * rate // BPS_DENOMINATOR, "source": "category", "rate": rate}

    return none


def calculate_cart_cashback(
    lines: list[dict],
    category_rules: dict[int, int],
    *,
    is_member: bool,
    point_value_cents: int,
) -> dict:
    """
    Cashback for a whole cart with per-line breakdown.

    Returns {"total_cents", "points", "breakdown": [...]}.
    """
    breakdown = []
    total = 0
    for line in lines:
        if is_member:
            result = calculate_line_cashback(line, category_rules)
        else:
            result = {"amount_cents": 0, "source": "none", "rate": 0}
        total += result["amount_cents"]
        breakdown.append({
            "line_id": line.get("line_id"),
            "name": line.get("name"),
            "amount_cents": result["amount_cents"],
            "points": result["amount_cents"] // point_value_cents,
            "source": result["source"],
            "rate": result["rate"],
        })
    return {
        "total_cents": total,
        "points": total // point_value_cents,
        "breakdown": breakdown,
    }


def cart_cashback(lines: list[dict], *, is_member: bool) -> dict:
    """calculate_cart_cashback() with the stored rules and configured point value."""
    return calculate_cart_cashback(
        lines,
        active_rules_map(),
        is_member=is_member,
        point_value_cents=current_app.config["POINT_VALUE_CENTS"],
    )


# =============================================================================
# Category rules
# =============================================================================

def active_rules_map() -> dict[int, int]:
    rows = db.session.query(CashbackRule).filter(CashbackRule.is_active.is_(True)).all()
    return {r.category_id: r.rate_bps for r in rows}


def list_rules() -> list[dict]:
    rows = db.session.query(CashbackRule).order_by(CashbackRule.id.asc()).all()
    return [r.to_dict() for r in rows]


def create_rule(*, category_id: int, rate_bps: int, is_active: bool = True) -> dict:
    if db.session.get(Category, category_id) is None:
        raise CashbackError("Category not found")
    existing = db.session.query(CashbackRule).filter_by(category_id=category_id).first()
    if existing:
        raise ConflictError("Cashback rule already exists for this category")

    rule = CashbackRule(category_id=category_id, rate_bps=rate_bps, is_active=is_active)
    db.session.add(rule)
    db.session.commit()
    return rule.to_dict()


def update_rule(*, rule_id: int, patch: dict) -> dict | None:
    rule = db.session.get(CashbackRule, rule_id)
    if rule is None:
        return None
    if "category_id" in patch and patch["category_id"] != rule.category_id:
        clash = db.session.query(CashbackRule).filter_by(category_id=patch["category_id"]).first()
        if clash:
            raise ConflictError("Cashback rule already exists for this category")
        if db.session.get(Category, patch["category_id"]) is None:
            raise CashbackError("Category not found")
        rule.category_id = patch["category_id"]
    if "rate_bps" in patch:
        rule.rate_bps = patch["rate_bps"]
    if "is_active" in patch:
        rule.is_active = bool(patch["is_active"])
    db.session.commit()
    return rule.to_dict()


def toggle_rule(*, rule_id: int) -> dict | None:
    rule = db.session.get(CashbackRule, rule_id)
    if rule is None:
        return None
    rule.is_active = not rule.is_active
    db.session.commit()
    return rule.to_dict()


def delete_rule(*, rule_id: int) -> bool:
    rule = db.session.get(CashbackRule, rule_id)
    if rule is None:
        return False
    db.session.delete(rule)
    db.session.commit()
    return True
