# Overview: Service-layer operations for the kiosk cart; line building, pricing, stock gate, totals, points preview.

"""
Cart Service

The cart is a JSON list on the kiosk session. Line kinds:
- product: simple catalog product
- variant: catalog product with variant option selections
- custom_joint: joint builder configuration, priced server-side, no cashback
- preroll: quality x strain x size from the prerolls grid

Every line is priced when it is added, for the session's customer (member
prices apply to members only), and carries a snapshot of the product's
cashback settings so the totals never depend on later catalog edits.

TOTALS:
    subtotal = sum(unit_price x quantity)
    total    = max(0, subtotal - points value)
"""
from __future__ import annotations

import uuid

from flask import current_app

from ..extensions import db
from ..models import KioskSession, Product
from . import cashback_service, catalog_service, customer_service, joint_option_service, preroll_service, stock_service
from .catalog_service import CatalogError
from .joint_builder import calculate_total_price, describe_configuration, validate_configuration
from .kiosk_session_service import (
    is_member,
    load_session,
    require_customer,
    require_live,
    save_machine,
    session_view,
)
from .session_machine import CART_OPEN


class CartError(Exception):
    """Raised for cart operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


KIND_PRODUCT = "product"
KIND_VARIANT = "variant"
KIND_CUSTOM_JOINT = "custom_joint"
KIND_PREROLL = "preroll"

MAX_LINE_QUANTITY = 99


def _new_line_id() -> str:
    return uuid.uuid4().hex[:12]


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise CartError("quantity must be an integer")
    if quantity < 1:
        raise CartError("Quantity must be at least 1")
    if quantity > MAX_LINE_QUANTITY:
        raise CartError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")
    return quantity


def _cashback_snapshot(product: Product) -> dict:
    return {
        "enabled": bool(product.cashback_enabled),
        "type": product.cashback_type,
        "value": product.cashback_value or 0,
        "min_purchase_cents": product.cashback_min_purchase_cents,
    }


def _quantity_in_cart(lines: list[dict], product_id: int, stock_variant_id: str, *, exclude_line: str | None = None) -> int:
    return sum(
        int(line.get("quantity") or 0)
        for line in lines
        if line.get("product_id") == product_id
        and (line.get("stock_variant_id") or "") == stock_variant_id
        and line.get("line_id") != exclude_line
    )


def _require_stock(product: Product, lines: list[dict], *, requested: int, stock_variant_id: str, exclude_line: str | None = None) -> None:
    in_cart = _quantity_in_cart(lines, product.id, stock_variant_id, exclude_line=exclude_line)
    check = stock_service.can_add_to_cart(
        product, requested=requested, in_cart=in_cart, variant_id=stock_variant_id or None
    )
    if not check["can_add"]:
        raise CartError(check["reason"], details={"product_id": product.id, "stock": check.get("stock")})


# =============================================================================
# Totals
# =============================================================================

def cart_subtotal_cents(lines: list[dict]) -> int:
    return sum(int(line.get("unit_price_cents") or 0) * int(line.get("quantity") or 0) for line in lines)


def cart_totals(session: KioskSession) -> dict:
    lines = list(session.cart or [])
    member = is_member(session)
    subtotal = cart_subtotal_cents(lines)
    point_value = current_app.config["POINT_VALUE_CENTS"]

    cashback = cashback_service.cart_cashback(lines, is_member=member)

    if member:
        balance = customer_service.get_points_balance(session.customer_id)
        redemption = customer_service.calculate_redemption(
            total_points=balance,
            subtotal_cents=subtotal,
            percentage=session.points_usage_percentage or 0,
            point_value_cents=point_value,
        )
    else:
        balance = 0
        redemption = {
            "percentage": 0,
            "max_percentage": 0,
            "points_to_use": 0,
            "points_value_cents": 0,
            "total_after_points_cents": subtotal,
        }

    return {
        "item_count": sum(int(line.get("quantity") or 0) for line in lines),
        "line_count": len(lines),
        "subtotal_cents": subtotal,
        "points_balance": balance,
        "points_usage_percentage": redemption["percentage"],
        "max_points_percentage": redemption["max_percentage"],
        "points_to_use": redemption["points_to_use"],
        "points_value_cents": redemption["points_value_cents"],
        "total_cents": redemption["total_after_points_cents"],
        "cashback_cents": cashback["total_cents"],
        "cashback_points": cashback["points"],
        "cashback_breakdown": cashback["breakdown"],
    }


# =============================================================================
# Mutations
# =============================================================================

def _mutate(token: str, now: float | None, change, *, leave_builder: bool = False) -> dict:
    """Load a live session, apply change(session, lines) -> lines, save."""
    session, machine = load_session(token, now)
    require_live(machine)
    require_customer(session)

    lines = [dict(line) for line in session.cart or []]
    lines = change(session, lines)
    session.cart = lines

    machine.touch(now)
    if leave_builder:
        machine.set_idle_timeout(None, now)
    if machine.state == CART_OPEN and not lines:
        machine.close_cart(now)
    save_machine(session, machine)
    db.session.commit()
    return session_view(session, machine, now)


def add_product(
    token: str,
    *,
    product_id: int,
    quantity: int = 1,
    selections: dict[str, str] | None = None,
    now: float | None = None,
) -> dict:
    """
    Add a catalog product. Lines for the same product and the same option
    selections are merged.
    """
    quantity = _check_quantity(quantity)
    selections = {str(k): str(v) for k, v in (selections or {}).items()}

    def change(session: KioskSession, lines: list[dict]) -> list[dict]:
        product = catalog_service.get_product(product_id)
        if product is None or not product.is_active:
            raise CartError("Product not available", details={"product_id": product_id})

        visible = catalog_service.visible_category_ids(customer=session.customer, is_no_member=session.is_no_member)
        if visible is not None and product.category_id not in visible:
            raise CartError("Product not available", details={"product_id": product_id})

        if product.has_variants and not selections:
            raise CartError("Please select product options")

        try:
            unit_price = catalog_service.unit_price_cents(product, is_member=is_member(session), selections=selections)
        except CatalogError as e:
            raise CartError(str(e), details=e.details)

        variant_names = []
        image = product.main_image
        for variant_id, option_id in selections.items():
            option = product.find_option(variant_id, option_id) or {}
            variant_names.append(option.get("name") or option_id)
            image = option.get("image") or image

        stock_variant_id = ""
        if selections:
            first_variant, first_option = next(iter(selections.items()))
            stock_variant_id = f"{first_variant}-{first_option}"

        _require_stock(product, lines, requested=quantity, stock_variant_id=stock_variant_id)

        for line in lines:
            if line.get("product_id") == product.id and (line.get("variant_selections") or {}) == selections:
                new_quantity = int(line["quantity"]) + quantity
                _check_quantity(new_quantity)
                line["quantity"] = new_quantity
                return lines

        lines.append({
            "line_id": _new_line_id(),
            "kind": KIND_VARIANT if selections else KIND_PRODUCT,
            "product_id": product.id,
            "category_id": product.category_id,
            "name": product.name,
            "unit_price_cents": unit_price,
            "quantity": quantity,
            "image": image,
            "variant_selections": selections or None,
            "variant_name": " / ".join(variant_names) or None,
            "stock_variant_id": stock_variant_id,
            "pos_item_id": product.pos_item_id,
            "details": [],
            "cashback": _cashback_snapshot(product),
        })
        return lines

    return _mutate(token, now, change)


def add_custom_joint(token: str, *, selection: dict, quantity: int = 1, now: float | None = None) -> dict:
    """Validate and price a joint builder configuration, then add it."""
    quantity = _check_quantity(quantity)

    def change(session: KioskSession, lines: list[dict]) -> list[dict]:
        config = joint_option_service.resolve_configuration(selection)
        result = validate_configuration(config)
        if not result["is_valid"]:
            raise CartError("Invalid joint configuration", details={"errors": result["errors"]})

        lines.append({
            "line_id": _new_line_id(),
            "kind": KIND_CUSTOM_JOINT,
            "product_id": None,
            "category_id": None,
            "name": "Custom Joint",
            "unit_price_cents": calculate_total_price(config),
            "quantity": quantity,
            "image": None,
            "variant_selections": None,
            "variant_name": None,
            "stock_variant_id": "",
            "details": describe_configuration(config),
            "cashback": None,
            "joint_config": config.to_dict(),
        })
        return lines

    return _mutate(token, now, change, leave_builder=True)


def add_preroll(
    token: str,
    *,
    quality: str,
    strain: str,
    size: str,
    quantity: int = 1,
    now: float | None = None,
) -> dict:
    quantity = _check_quantity(quantity)

    def change(session: KioskSession, lines: list[dict]) -> list[dict]:
        preroll = preroll_service.resolve_preroll(quality, strain, size)

        for line in lines:
            if line.get("kind") == KIND_PREROLL and line.get("preroll") == {
                "quality": quality, "strain": strain, "size": size,
            }:
                new_quantity = int(line["quantity"]) + quantity
                _check_quantity(new_quantity)
                line["quantity"] = new_quantity
                return lines

        lines.append({
            "line_id": _new_line_id(),
            "kind": KIND_PREROLL,
            "product_id": None,
            "category_id": None,
            "name": preroll["name"],
            "unit_price_cents": preroll["price_cents"],
            "quantity": quantity,
            "image": preroll["image"],
            "variant_selections": None,
            "variant_name": None,
            "stock_variant_id": "",
            "details": [],
            "cashback": None,
            "preroll": {"quality": quality, "strain": strain, "size": size},
        })
        return lines

    return _mutate(token, now, change)


def _find_line(lines: list[dict], line_id: str) -> dict:
    for line in lines:
        if line.get("line_id") == line_id:
            return line
    raise CartError("Cart item not found", details={"line_id": line_id})


def update_quantity(token: str, *, line_id: str, quantity: int, now: float | None = None) -> dict:
    quantity = _check_quantity(quantity)

    def change(session: KioskSession, lines: list[dict]) -> list[dict]:
        line = _find_line(lines, line_id)
        if quantity > int(line["quantity"]) and line.get("product_id"):
            product = catalog_service.get_product(line["product_id"])
            if product is not None:
                _require_stock(
                    product,
                    lines,
                    requested=quantity,
                    stock_variant_id=line.get("stock_variant_id") or "",
                    exclude_line=line_id,
                )
        line["quantity"] = quantity
        return lines

    return _mutate(token, now, change)


def remove_line(token: str, *, line_id: str, now: float | None = None) -> dict:
    def change(session: KioskSession, lines: list[dict]) -> list[dict]:
        _find_line(lines, line_id)
        return [line for line in lines if line.get("line_id") != line_id]

    return _mutate(token, now, change)


def clear_cart(token: str, now: float | None = None) -> dict:
    return _mutate(token, now, lambda session, lines: [])


def set_points_percentage(token: str, *, percentage: int, now: float | None = None) -> dict:
    """Move the points slider; the stored value is snapped and capped."""
    if isinstance(percentage, bool) or not isinstance(percentage, int):
        raise CartError("percentage must be an integer")

    session, machine = load_session(token, now)
    require_live(machine)
    if not is_member(session):
        raise CartError("Only members can use points")

    session.points_usage_percentage = max(0, min(100, percentage))
    redemption = cart_totals(session)
    session.points_usage_percentage = redemption["points_usage_percentage"]

    machine.touch(now)
    save_machine(session, machine)
    db.session.commit()
    return session_view(session, machine, now)
