"""Background task that keeps the access token fresh."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from szczk_store._errors import BackendUnavailable, Cancelled, SzczkStoreError

if TYPE_CHECKING:
    from szczk_store._auth import Authenticator, Refresher
    from szczk_store._token import TokenStore

log = logging.getLogger(__name__)


class TokenScheduler:
    """Renews the token ``margin`` seconds before it expires, until stopped.

    One daemon thread sleeps on the lifecycle event, so setting the event both
    wakes the thread and ends the loop. On each wake-up the token is refreshed;
    if that fails the scheduler falls back to a full authentication, and if
    that fails too the error is logged and the next attempt is rearmed.

    :param authenticator: Fallback used when a refresh fails.
    :param refresher: Performs the scheduled renewal.
    :param tokens: Token cell whose expiry drives the schedule.
    :param lifecycle: Event set when the adapter shuts down.
    :param margin: Seconds before expiry at which to renew.
    :param min_interval: Sleep used when the computed interval is negative.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        refresher: Refresher,
        tokens: TokenStore,
        lifecycle: threading.Event,
        *,
        margin: float = 300.0,
        min_interval: float = 60.0,
    ) -> None:
        self._authenticator = authenticator
        self._refresher = refresher
        self._tokens = tokens
        self._lifecycle = lifecycle
        self._margin = margin
        self._min_interval = min_interval
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_interval(self) -> float:
        """Seconds to sleep before the next renewal."""
        try:
            state = self._tokens.snapshot()
        except BackendUnavailable:
            return self._min_interval
        interval = state.remaining(self._tokens.now()).total_seconds() - self._margin
        if interval < 0:
            return self._min_interval
        return interval

    def run(self) -> None:
        """Scheduler loop; returns once the lifecycle event is set."""
        log.info("Token refresh scheduler started")
        while True:
            interval = self.next_interval()
            log.debug("Next token refresh in %.0f seconds", interval)
            if self._lifecycle.wait(interval):
                break
            self.tick()
        log.info("Token refresh scheduler stopped")

    def tick(self) -> None:
        """Refresh once, falling back to re-authentication."""
        try:
            self._refresher.refresh()
            return
        except Cancelled:
            return
        except SzczkStoreError as exc:
            log.warning("Scheduled token refresh failed, re-authenticating: %s", exc)
        try:
            self._authenticator.authenticate()
        except Cancelled:
            return
        except SzczkStoreError as exc:
            log.error("Re-authentication failed; operations will fail until the next attempt: %s", exc)

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self.run, name="szczk-token-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the loop to exit and wait for the thread."""
        self._lifecycle.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
