# Overview: Service-layer operations for back-office session tokens.

"""
Session Token Service

Tokens are 32 random bytes (hex), returned to the client once and stored as
a SHA-256 hash. Sessions end after 12 hours, or after 2 hours without use,
or on logout.
"""
from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=12)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user_id: int, user_agent: str | None = None, ip_address: str | None = None) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token)."""
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def _revoke(session: SessionToken) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()


def validate_session(token: str) -> User | None:
    """
    Returns the session's user, or None when the token is unknown, revoked,
    expired, idle too long, or its user was deactivated. Touches last_used_at.
    """
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None
    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session)
        db.session.commit()
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if session is None:
        return False
    _revoke(session)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int) -> int:
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        _revoke(session)
    db.session.commit()
    return len(sessions)
