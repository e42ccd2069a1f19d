"""
Authentication & Session State.

Provides an injectable ``SessionManager`` that holds the session flow
state, the authenticated ``Principal`` and the live phone verification
handle for one controller instance.

Usage::

    from sessionflow.auth import SessionManager
    from sessionflow.models import Principal

    session = SessionManager()
    session.authenticate(Principal(id="abc-123", email="user@example.com"))
    principal = session.current_principal
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Generator, Optional

from sessionflow.models.enums import SessionState
from sessionflow.models.principal import Principal, VerificationHandle

_IN_FLIGHT_STATES: frozenset[SessionState] = frozenset({
    SessionState.REGISTERING,
    SessionState.AUTHENTICATING,
    SessionState.VERIFYING,
})


class SessionManager:
    """Injectable holder for the current session.

    All reads and writes go through one ``RLock``.  Every call to
    :meth:`clear` bumps :attr:`epoch`; work that started under an older
    epoch must not write its outcome back (see :meth:`guard`).
    """

    def __init__(self) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._state: SessionState = SessionState.ANONYMOUS
        self._principal: Optional[Principal] = None
        self._handle: Optional[VerificationHandle] = None
        self._epoch: int = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def current_principal(self) -> Optional[Principal]:
        """Return the authenticated principal, or ``None``."""
        with self._lock:
            return self._principal

    @property
    def handle(self) -> Optional[VerificationHandle]:
        """Return the live phone verification handle, or ``None``."""
        with self._lock:
            return self._handle

    @property
    def epoch(self) -> int:
        with self._lock:
            return self._epoch

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a principal is currently signed in."""
        with self._lock:
            return self._principal is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @contextmanager
    def guard(self, epoch: int) -> Generator[bool, None, None]:
        """Hold the session lock and report whether *epoch* is still current.

        Usage::

            with session.guard(started_epoch) as current:
                if current:
                    session.authenticate(principal)
        """
        with self._lock:
            yield self._epoch == epoch

    def begin(self, state: SessionState) -> int:
        """Enter a transient in-flight state and return the current epoch."""
        with self._lock:
            self._state = state
            return self._epoch

    def invalidate(self) -> None:
        """Bump the epoch so outcomes of in-flight work are discarded."""
        with self._lock:
            self._epoch += 1

    def authenticate(self, principal: Principal) -> None:
        """Record *principal* as signed in; any pending handle is consumed."""
        with self._lock:
            self._principal = principal
            self._handle = None
            self._state = SessionState.AUTHENTICATED

    def set_pending(self, handle: VerificationHandle) -> None:
        """Make *handle* the single live handle and wait for a code."""
        with self._lock:
            self._handle = handle
            self._state = SessionState.CODE_PENDING

    def replace_handle(self, handle: VerificationHandle) -> None:
        """Swap the live handle without touching the state."""
        with self._lock:
            self._handle = handle

    def settle_failure(self, keep_handle: bool = False) -> SessionState:
        """Leave an in-flight state after a failed attempt.

        Returns to ``CODE_PENDING`` when the handle is kept, otherwise
        to ``AUTHENTICATED`` if a principal is still signed in, else
        ``ANONYMOUS``.
        """
        with self._lock:
            if not keep_handle:
                self._handle = None
            if self._handle is not None:
                self._state = SessionState.CODE_PENDING
            elif self._principal is not None:
                self._state = SessionState.AUTHENTICATED
            else:
                self._state = SessionState.ANONYMOUS
            return self._state

    def settle_transient(self) -> SessionState:
        """Leave an in-flight state whose outcome will never arrive.

        A live handle keeps ``CODE_PENDING``; settled states are left
        unchanged.
        """
        with self._lock:
            in_flight = self._state in _IN_FLIGHT_STATES or (
                self._state == SessionState.CODE_PENDING and self._handle is None
            )
            if in_flight:
                return self.settle_failure(keep_handle=True)
            return self._state

    def clear(self) -> None:
        """End the session: drop principal and handle, go ``ANONYMOUS``."""
        with self._lock:
            self._principal = None
            self._handle = None
            self._state = SessionState.ANONYMOUS
            self.invalidate()
