"""Per-identifier fixed-window admission control.

One window per caller identifier (usually the client address). The first
call, or the first call after a window has elapsed, opens a new window with
count 1. Each later call in the window increments the count; once it has
reached max_requests every further call is refused until the window resets.

A denial is a normal result, never an exception.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from wtfy_core.config import RateLimitSettings
from wtfy_core.models import Admission

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_time: float


@dataclass(frozen=True)
class WindowStatus:
    identifier: str
    requests: int
    remaining: int
    reset_time: float


class RateLimiter:
    def __init__(self, settings: RateLimitSettings | None = None, clock: Callable[[], float] = time.time):
        self._settings = settings or RateLimitSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}
        self._sweeper: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def max_requests(self) -> int:
        return self._settings.max_requests

    def admit(self, identifier: str) -> Admission:
        """Count one request for identifier and say whether it may proceed."""
        max_requests = self._settings.max_requests
        with self._lock:
            now = self._clock()
            window = self._windows.get(identifier)

            if window is None or now > window.reset_time:
                reset_time = now + self._settings.window_seconds
                self._windows[identifier] = _Window(count=1, reset_time=reset_time)
                return Admission(allowed=True, remaining=max_requests - 1, reset_time=reset_time)

            if window.count >= max_requests:
                logger.info("Rate limit exceeded for %s until %.0f", identifier, window.reset_time)
                return Admission(allowed=False, remaining=0, reset_time=window.reset_time)

            window.count += 1
            return Admission(allowed=True, remaining=max_requests - window.count, reset_time=window.reset_time)

    def get_status(self, identifier: str) -> WindowStatus | None:
        with self._lock:
            window = self._windows.get(identifier)
            if window is None or self._clock() > window.reset_time:
                return None
            return WindowStatus(
                identifier=identifier,
                requests=window.count,
                remaining=max(0, self._settings.max_requests - window.count),
                reset_time=window.reset_time,
            )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._windows.pop(identifier, None)

    def entries(self) -> list[WindowStatus]:
        """All windows that are still open."""
        with self._lock:
            now = self._clock()
            return [
                WindowStatus(
                    identifier=identifier,
                    requests=w.count,
                    remaining=max(0, self._settings.max_requests - w.count),
                    reset_time=w.reset_time,
                )
                for identifier, w in self._windows.items()
                if now <= w.reset_time
            ]

    def cleanup(self) -> int:
        """Drop elapsed windows so the map does not grow without bound."""
        with self._lock:
            now = self._clock()
            expired = [identifier for identifier, w in self._windows.items() if now > w.reset_time]
            for identifier in expired:
                del self._windows[identifier]
        if expired:
            logger.debug("Rate limiter swept %d expired window(s)", len(expired))
        return len(expired)

    # ------------------------------------------------------------------ #
    # Background sweep                                                    #
    # ------------------------------------------------------------------ #

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="wtfy-rate-limit-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self._settings.sweep_interval_seconds):
            self.cleanup()
