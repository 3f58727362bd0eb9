# Overview: Kiosk session timer state machine; one deadline, explicit states, injected clock.

"""
Kiosk Session State Machine

STATES:
- ACTIVE: browsing the menu; idle deadline running
- CART_OPEN: cart view open; idle deadline running
- EXPIRY_WARNING: "are you still there?" countdown; grace deadline running
- EXPIRED: terminal (reason: timeout, exit, checkout)

TRANSITIONS:
    ACTIVE / CART_OPEN --idle deadline--> EXPIRY_WARNING --grace deadline--> EXPIRED(timeout)
    EXPIRY_WARNING --continue--> state it interrupted (idle restarted)
    ACTIVE --open_cart (non-empty cart)--> CART_OPEN --close_cart--> ACTIVE
    any live state --exit--> EXPIRED(exit), --complete--> EXPIRED(checkout)

Exactly one deadline exists at a time, so the idle timer and the grace
countdown can never run together. Time only moves through the injected
clock; deadlines are evaluated lazily by poll(), which every operation
calls first. A late poll applies every deadline that has passed, in order.

Interactions during EXPIRY_WARNING do not dismiss the warning; only
continue_session() does.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional


ACTIVE = "ACTIVE"
CART_OPEN = "CART_OPEN"
EXPIRY_WARNING = "EXPIRY_WARNING"
EXPIRED = "EXPIRED"

STATES = (ACTIVE, CART_OPEN, EXPIRY_WARNING, EXPIRED)
LIVE_STATES = (ACTIVE, CART_OPEN)

REASON_TIMEOUT = "timeout"
REASON_EXIT = "exit"
REASON_CHECKOUT = "checkout"


class SessionStateError(Exception):
    """Base class for state machine errors."""


class SessionExpiredError(SessionStateError):
    """Raised when an operation targets an expired session."""
    def __init__(self, reason: str | None):
        super().__init__(f"Session expired ({reason or 'unknown'})")
        self.reason = reason


class InvalidTransitionError(SessionStateError):
    """Raised when an event is not allowed in the current state."""


@dataclass(frozen=True)
class SessionTimeouts:
    idle_seconds: float = 60
    warning_seconds: float = 60


class KioskSessionMachine:
    def __init__(
        self,
        timeouts: SessionTimeouts | None = None,
        clock: Callable[[], float] = time.monotonic,
        *,
        state: str = ACTIVE,
        resume_state: str | None = None,
        deadline: float | None = None,
        idle_timeout: float | None = None,
        expired_reason: str | None = None,
    ):
        if state not in STATES:
            raise ValueError(f"Unknown state: {state}")
        self.timeouts = timeouts or SessionTimeouts()
        self._clock = clock
        self._state = state
        self._resume_state = resume_state
        self._idle_timeout = idle_timeout
        self._expired_reason = expired_reason
        if deadline is None and state in LIVE_STATES:
            deadline = self._clock() + self.idle_timeout
        self._deadline = deadline

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    @classmethod
    def from_snapshot(
        cls,
        snapshot: dict,
        timeouts: SessionTimeouts | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "KioskSessionMachine":
        return cls(
            timeouts,
            clock,
            state=snapshot["state"],
            resume_state=snapshot.get("resume_state"),
            deadline=snapshot.get("deadline"),
            idle_timeout=snapshot.get("idle_timeout"),
            expired_reason=snapshot.get("expired_reason"),
        )

    def snapshot(self) -> dict:
        return {
            "state": self._state,
            "resume_state": self._resume_state,
            "deadline": self._deadline,
            "idle_timeout": self._idle_timeout,
            "expired_reason": self._expired_reason,
        }

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def expired_reason(self) -> str | None:
        return self._expired_reason

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def idle_timeout(self) -> float:
        if self._idle_timeout is not None:
            return self._idle_timeout
        return self.timeouts.idle_seconds

    @property
    def is_expired(self) -> bool:
        return self._state == EXPIRED

    def seconds_remaining(self, now: Optional[float] = None) -> float | None:
        """Seconds until the current deadline fires (None once expired)."""
        self.poll(now)
        if self._deadline is None:
            return None
        now = self._clock() if now is None else now
        return max(0.0, self._deadline - now)

    # -------------------------------------------------------------------------
    # Clock
    # -------------------------------------------------------------------------

    def poll(self, now: Optional[float] = None) -> list[tuple[str, str]]:
        """
        Apply every deadline that has passed. Returns the transitions taken.

        The grace deadline counts from the moment the idle deadline fired,
        not from the poll, so a late poll cannot extend a session.
        """
        now = self._clock() if now is None else now
        transitions = []
        while self._deadline is not None and now >= self._deadline:
            if self._state in LIVE_STATES:
                transitions.append((self._state, EXPIRY_WARNING))
                self._resume_state = self._state
                self._state = EXPIRY_WARNING
                self._deadline = self._deadline + self.timeouts.warning_seconds
            elif self._state == EXPIRY_WARNING:
                transitions.append((EXPIRY_WARNING, EXPIRED))
                self._expire(REASON_TIMEOUT)
            else:
                break
        return transitions

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def _require_live(self, now: Optional[float]) -> float:
        now = self._clock() if now is None else now
        self.poll(now)
        if self._state == EXPIRED:
            raise SessionExpiredError(self._expired_reason)
        return now

    def _restart_idle(self, now: float) -> None:
        self._deadline = now + self.idle_timeout

    def _expire(self, reason: str) -> None:
        self._state = EXPIRED
        self._expired_reason = reason
        self._resume_state = None
        self._deadline = None

    def touch(self, now: Optional[float] = None) -> bool:
        """Record an interaction. Returns False when ignored (warning showing)."""
        now = self._require_live(now)
        if self._state == EXPIRY_WARNING:
            return False
        self._restart_idle(now)
        return True

    def open_cart(self, cart_size: int, now: Optional[float] = None) -> str:
        now = self._require_live(now)
        if self._state == EXPIRY_WARNING:
            raise InvalidTransitionError("Cannot open the cart while the expiry warning is showing")
        if cart_size <= 0:
            raise InvalidTransitionError("Cart is empty")
        self._state = CART_OPEN
        self._restart_idle(now)
        return self._state

    def close_cart(self, now: Optional[float] = None) -> str:
        now = self._require_live(now)
        if self._state == EXPIRY_WARNING:
            raise InvalidTransitionError("Cannot close the cart while the expiry warning is showing")
        self._state = ACTIVE
        self._restart_idle(now)
        return self._state

    def continue_session(self, now: Optional[float] = None) -> str:
        """Dismiss the expiry warning and return to the interrupted state."""
        now = self._require_live(now)
        if self._state == EXPIRY_WARNING:
            self._state = self._resume_state or ACTIVE
            self._resume_state = None
        self._restart_idle(now)
        return self._state

    def set_idle_timeout(self, seconds: float | None, now: Optional[float] = None) -> float:
        """
        Override the idle timeout (e.g. the joint builder's longer timeout).
        None restores the default. Restarts the idle deadline when live.
        """
        now = self._require_live(now)
        if seconds is not None and seconds <= 0:
            raise ValueError("idle timeout must be positive")
        self._idle_timeout = seconds
        if self._state in LIVE_STATES:
            self._restart_idle(now)
        return self.idle_timeout

    def exit_session(self, now: Optional[float] = None) -> str:
        self._require_live(now)
        self._expire(REASON_EXIT)
        return self._state

    def complete(self, now: Optional[float] = None) -> str:
        """Checkout finished; the session ends and the kiosk resets."""
        self._require_live(now)
        self._expire(REASON_CHECKOUT)
        return self._state
