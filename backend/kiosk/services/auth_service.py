# Overview: Service-layer operations for back-office users; bcrypt password hashing and authentication.

"""
Authentication Service

WHY: Every back-office action (points approval, refunds, catalog edits) must
be attributable. Passwords are hashed with bcrypt; session tokens are
managed separately (see session_service.py).
"""
from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..time_utils import utcnow


ROLES = ("admin", "staff")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Minimum 8 characters with an uppercase letter, a lowercase letter and a digit.
    """
    if len(password or "") < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


def create_user(username: str, email: str, password: str, role: str = "staff") -> User:
    """
    Raises:
        ValueError: unknown role, or username/email already taken
        PasswordValidationError: weak password
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    user = User(username=username, email=email, password_hash=hash_password(password), role=role)
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Returns the active user for valid credentials (username or email), else None."""
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    user.last_login_at = utcnow()
    db.session.commit()
    return user


def set_active(user_id: int, is_active: bool) -> User | None:
    user = db.session.get(User, user_id)
    if user is None:
        return None
    user.is_active = is_active
    db.session.commit()
    return user


def list_users() -> list[dict]:
    return [u.to_dict() for u in db.session.query(User).order_by(User.username.asc()).all()]
