# Overview: Service-layer operations for kiosk sessions; persistence of the timer state machine, customer identification, menu.

"""
Kiosk Session Service

A kiosk session lives from the welcome screen until checkout, exit, or
inactivity timeout. The plaintext session token is only returned to the
kiosk once; the database stores its SHA-256 hash.

TIMERS: The session state machine (services.session_machine) is rebuilt
from the persisted snapshot on every request, polled with the wall clock,
and saved back. Deadlines are epoch seconds so any worker can evaluate them.

RESET: When a session expires for any reason, its cart, customer and
payment method are cleared in the same write.
"""
from __future__ import annotations

import hashlib
import secrets
import time

from flask import current_app

from ..extensions import db
from ..models import KioskSession, Product
from ..time_utils import utcnow
from . import catalog_service, customer_service, stock_service, visit_service
from .session_machine import (
    ACTIVE,
    CART_OPEN,
    EXPIRED,
    EXPIRY_WARNING,
    KioskSessionMachine,
    SessionExpiredError,
    SessionTimeouts,
)


class KioskSessionError(Exception):
    """Raised for kiosk session errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class KioskSessionNotFound(KioskSessionError):
    """Raised when a session token does not match any session."""


SUPPORTED_LANGUAGES = (
    "en", "th", "es", "fr", "de", "it", "ja", "zh", "ru", "pt", "hi", "ko", "nl", "tr",
)


def wall_clock() -> float:
    return time.time()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _timeouts() -> SessionTimeouts:
    return SessionTimeouts(
        idle_seconds=current_app.config["SESSION_IDLE_SECONDS"],
        warning_seconds=current_app.config["SESSION_WARNING_SECONDS"],
    )


# =============================================================================
# Machine <-> row
# =============================================================================

def machine_for(session: KioskSession) -> KioskSessionMachine:
    return KioskSessionMachine.from_snapshot(
        {
            "state": session.state,
            "resume_state": session.resume_state,
            "deadline": session.deadline_epoch,
            "idle_timeout": session.idle_timeout_override,
            "expired_reason": session.expired_reason,
        },
        _timeouts(),
        wall_clock,
    )


def save_machine(session: KioskSession, machine: KioskSessionMachine) -> None:
    """Copy the machine snapshot onto the row. Caller commits."""
    was_expired = session.state == EXPIRED
    snap = machine.snapshot()
    session.state = snap["state"]
    session.resume_state = snap["resume_state"]
    session.deadline_epoch = snap["deadline"]
    session.idle_timeout_override = snap["idle_timeout"]
    session.expired_reason = snap["expired_reason"]
    if machine.is_expired and not was_expired:
        _reset(session)


def _reset(session: KioskSession) -> None:
    session.cart = []
    session.customer = None
    session.customer_id = None
    session.is_no_member = False
    session.payment_method = None
    session.points_usage_percentage = 0
    session.ended_at = utcnow()


def load_session(token: str, now: float | None = None) -> tuple[KioskSession, KioskSessionMachine]:
    """
    Find a session by token and apply every deadline that has passed.

    Expiry transitions are committed immediately so a timed-out session is
    reset even when the caller fails afterwards.
    """
    if not token:
        raise KioskSessionNotFound("Session not found")
    session = db.session.query(KioskSession).filter_by(token_hash=hash_token(token)).first()
    if session is None:
        raise KioskSessionNotFound("Session not found")

    machine = machine_for(session)
    transitions = machine.poll(now)
    if transitions:
        save_machine(session, machine)
        db.session.commit()
        current_app.logger.info(
            "Kiosk session %s: %s", session.id, ", ".join(f"{a}->{b}" for a, b in transitions)
        )
    return session, machine


def require_live(machine: KioskSessionMachine) -> None:
    if machine.is_expired:
        raise SessionExpiredError(machine.expired_reason)


def require_customer(session: KioskSession) -> None:
    if session.customer_id is None and not session.is_no_member:
        raise KioskSessionError("Please identify as a member or continue as No-Member")


def is_member(session: KioskSession) -> bool:
    return session.customer_id is not None


def customer_name(session: KioskSession) -> str:
    if session.customer is not None:
        return session.customer.full_name
    return "No Member"


# =============================================================================
# Views
# =============================================================================

def session_view(session: KioskSession, machine: KioskSessionMachine, now: float | None = None) -> dict:
    from .cart_service import cart_totals

    data = session.to_dict()
    data["idle_timeout_seconds"] = machine.idle_timeout
    data["seconds_remaining"] = machine.seconds_remaining(now)
    data["warning_seconds"] = machine.timeouts.warning_seconds
    data["customer"] = customer_service.customer_summary(session.customer) if session.customer else None
    data["totals"] = cart_totals(session)
    return data


# =============================================================================
# Lifecycle
# =============================================================================

def start_session(*, kiosk_id: str | None = None, language: str = "en", now: float | None = None) -> tuple[dict, str]:
    """
    Create a session (welcome screen tapped) and count the visit.

    Returns (session view, plaintext token).
    """
    if language not in SUPPORTED_LANGUAGES:
        language = "en"

    token = secrets.token_hex(32)
    machine = KioskSessionMachine(_timeouts(), wall_clock, deadline=None if now is None else now + _timeouts().idle_seconds)
    session = KioskSession(
        token_hash=hash_token(token),
        kiosk_id=kiosk_id or current_app.config["KIOSK_ID"],
        language=language,
        cart=[],
    )
    save_machine(session, machine)
    db.session.add(session)
    db.session.commit()

    visit_service.record_visit()
    return session_view(session, machine, now), token


def get_session(token: str, now: float | None = None) -> dict:
    session, machine = load_session(token, now)
    return session_view(session, machine, now)


def identify_member(token: str, member_code: str, now: float | None = None) -> dict:
    session, machine = load_session(token, now)
    require_live(machine)
    if session.customer_id is not None or session.is_no_member:
        raise KioskSessionError("Customer already selected for this session")

    customer = customer_service.get_by_member_code(member_code or "")
    if customer is None:
        raise KioskSessionNotFound("Member not found", details={"member_code": member_code})

    session.customer_id = customer.id
    session.customer = customer
    customer_service.record_visit(customer.id)
    machine.touch(now)
    save_machine(session, machine)
    db.session.commit()

    visit_service.record_order_start()
    return session_view(session, machine, now)


def continue_as_no_member(token: str, now: float | None = None) -> dict:
    session, machine = load_session(token, now)
    require_live(machine)
    if session.customer_id is not None or session.is_no_member:
        raise KioskSessionError("Customer already selected for this session")

    session.is_no_member = True
    machine.touch(now)
    save_machine(session, machine)
    db.session.commit()

    visit_service.record_order_start()
    return session_view(session, machine, now)


def set_language(token: str, language: str, now: float | None = None) -> dict:
    if language not in SUPPORTED_LANGUAGES:
        raise KioskSessionError("Unsupported language", details={"language": language})
    session, machine = load_session(token, now)
    machine.touch(now)
    session.language = language
    save_machine(session, machine)
    db.session.commit()
    return session_view(session, machine, now)


# =============================================================================
# Timer events
# =============================================================================

def _apply(token: str, event, now: float | None) -> dict:
    session, machine = load_session(token, now)
    event(session, machine)
    save_machine(session, machine)
    db.session.commit()
    return session_view(session, machine, now)


def touch(token: str, now: float | None = None) -> dict:
    return _apply(token, lambda s, m: m.touch(now), now)


def open_cart(token: str, now: float | None = None) -> dict:
    return _apply(token, lambda s, m: m.open_cart(len(s.cart or []), now), now)


def close_cart(token: str, now: float | None = None) -> dict:
    return _apply(token, lambda s, m: m.close_cart(now), now)


def continue_session(token: str, now: float | None = None) -> dict:
    return _apply(token, lambda s, m: m.continue_session(now), now)


def exit_session(token: str, now: float | None = None) -> dict:
    return _apply(token, lambda s, m: m.exit_session(now), now)


def enter_joint_builder(token: str, now: float | None = None) -> dict:
    seconds = current_app.config["JOINT_BUILDER_IDLE_SECONDS"]
    return _apply(token, lambda s, m: m.set_idle_timeout(seconds, now), now)


def leave_joint_builder(token: str, now: float | None = None) -> dict:
    return _apply(token, lambda s, m: m.set_idle_timeout(None, now), now)


def sweep_expired(now: float | None = None) -> int:
    """
    Apply passed deadlines to every open session. Returns sessions expired.

    Kiosks poll their own session, so this only matters for abandoned ones.
    """
    now = wall_clock() if now is None else now
    rows = (
        db.session.query(KioskSession)
        .filter(
            KioskSession.state.in_((ACTIVE, CART_OPEN, EXPIRY_WARNING)),
            KioskSession.deadline_epoch <= now,
        )
        .all()
    )
    expired = 0
    for session in rows:
        machine = machine_for(session)
        machine.poll(now)
        save_machine(session, machine)
        if machine.is_expired:
            expired += 1
    db.session.commit()
    return expired


# =============================================================================
# Menu
# =============================================================================

def menu(token: str, now: float | None = None) -> dict:
    """Categories and products visible to the session's customer, priced for them."""
    session, machine = load_session(token, now)
    require_live(machine)
    require_customer(session)

    categories = catalog_service.list_visible_categories(
        customer=session.customer, is_no_member=session.is_no_member
    )
    category_ids = [c["id"] for c in categories]
    member = is_member(session)

    products_by_category: dict[int, list[dict]] = {cid: [] for cid in category_ids}
    if category_ids:
        products = (
            db.session.query(Product)
            .filter(Product.is_active.is_(True), Product.category_id.in_(category_ids))
            .order_by(Product.sort_order.asc(), Product.name.asc(), Product.id.asc())
            .all()
        )
        for product in products:
            item = product.to_dict()
            item["display_price_cents"] = catalog_service.unit_price_cents(product, is_member=member)
            item.update(stock_service.stock_flags(product))
            products_by_category[product.category_id].append(item)

    return {
        "is_member": member,
        "categories": [
            {
                **c,
                "subcategories": catalog_service.list_subcategories(category_id=c["id"], active_only=True),
                "products": products_by_category.get(c["id"], []),
            }
            for c in categories
        ],
    }
