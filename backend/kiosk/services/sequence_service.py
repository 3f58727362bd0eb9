# Overview: Atomic named counters and the human-readable codes built from them.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Counter
from .concurrency import run_with_retry


class SequenceError(Exception):
    """Raised when a counter cannot be allocated."""


# name -> (prefix, zero padding)
CODE_FORMATS = {
    "category": ("CAT", 3),
    "subcategory": ("SUB", 3),
    "product": ("PRD", 3),
    "customer": ("CK", 4),
}


def next_counter_value(name: str) -> int:
    """
    Atomically allocate the next value of a named counter.

    The UPDATE ... SET next_number = next_number + 1 is a single statement,
    so two writers never receive the same value. The first allocation
    inserts the row inside a savepoint; a concurrent insert falls back to
    the UPDATE path.
    """
    if not name:
        raise SequenceError("counter name is required")

    def _bump() -> int | None:
        stmt = (
            update(Counter)
            .where(Counter.name == name)
            .values(next_number=Counter.next_number + 1)
        )
        result = db.session.execute(stmt)
        if not result.rowcount:
            return None
        db.session.flush()
        current = db.session.query(Counter.next_number).filter_by(name=name).scalar()
        return current - 1

    def _op() -> int:
        value = _bump()
        if value is not None:
            return value
        try:
            with db.session.begin_nested():
                db.session.add(Counter(name=name, next_number=2))
            return 1
        except IntegrityError:
            value = _bump()
            if value is None:
                raise
            return value

    return run_with_retry(_op)


def next_code(kind: str) -> str:
    """Allocate the next display code for an entity kind (e.g. "CAT-001")."""
    if kind not in CODE_FORMATS:
        raise SequenceError(f"Unknown code kind: {kind}")
    prefix, pad = CODE_FORMATS[kind]
    return f"{prefix}-{next_counter_value(kind):0{pad}d}"
