"""Token state: the adapter's only shared mutable resource."""

from __future__ import annotations

import dataclasses
import threading
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from szczk_store._errors import BackendUnavailable

if TYPE_CHECKING:
    from szczk_store._types import Clock


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclasses.dataclass(frozen=True)
class TokenState:
    """An access/refresh token pair and the instant the access token expires."""

    access_token: str
    refresh_token: str
    expires_at: datetime

    def __repr__(self) -> str:
        return f"TokenState(expires_at={self.expires_at.isoformat()!r})"

    def remaining(self, now: datetime) -> timedelta:
        return self.expires_at - now


class TokenStore:
    """Guarded cell holding the current :class:`TokenState`.

    Readers get an immutable snapshot; writers swap in a whole new state. The
    lock is held only for the copy/assignment, never across network I/O.

    :param clock: Returns the current UTC time.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utcnow
        self._lock = threading.Lock()
        self._state: TokenState | None = None

    def now(self) -> datetime:
        return self._clock()

    @property
    def is_ready(self) -> bool:
        with self._lock:
            return self._state is not None

    def snapshot(self) -> TokenState:
        """Return the current state.

        :raises BackendUnavailable: If no authentication has completed yet.
        """
        with self._lock:
            state = self._state
        if state is None:
            raise BackendUnavailable("No valid access token; backend is not initialized")
        return state

    def replace(self, access_token: str, refresh_token: str, expires_in: float) -> TokenState:
        """Install a fresh token pair (result of a full authentication)."""
        state = TokenState(access_token, refresh_token, self._clock() + timedelta(seconds=expires_in))
        with self._lock:
            self._state = state
        return state

    def update_access(self, access_token: str, expires_in: float, refresh_token: str | None = None) -> TokenState:
        """Install a renewed access token, keeping the refresh token unless a new one is given.

        :raises BackendUnavailable: If there is no state to renew.
        """
        expires_at = self._clock() + timedelta(seconds=expires_in)
        with self._lock:
            if self._state is None:
                raise BackendUnavailable("Cannot refresh before authentication")
            state = TokenState(access_token, refresh_token or self._state.refresh_token, expires_at)
            self._state = state
        return state

    def invalidate(self) -> None:
        with self._lock:
            self._state = None
