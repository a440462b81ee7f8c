"""
Per-caller rate limiting for the sync endpoints.

Fixed cadence: a caller may have at most one accepted call per window.
Checking and consuming are separate steps so a request rejected for
another reason (e.g. the feed lock is busy) does not use up the caller's
window.  State is process-local; multi-process deployments can plug in a
shared-store implementation of ``RateLimiter``.
"""

from __future__ import annotations

import math
import threading
from datetime import datetime
from typing import Protocol, runtime_checkable

from feedsync_kernel.domain.clock import Clock, SystemClock


@runtime_checkable
class RateLimiter(Protocol):
    def check(self, caller: str | None) -> bool:
        """True when ``caller`` may make a call now."""
        ...

    def consume(self, caller: str | None) -> None:
        """Record an accepted call for ``caller``."""
        ...

    def try_acquire(self, caller: str | None) -> bool:
        """check() and consume() in one step."""
        ...


class InMemoryRateLimiter:
    """
    Last-accepted timestamp per caller.

    A ``window_seconds`` of 0 disables limiting.  Calls with no caller
    identity are never limited.
    """

    def __init__(self, window_seconds: int = 60, clock: Clock | None = None):
        self._window_seconds = window_seconds
        self._clock = clock or SystemClock()
        self._last: dict[str, datetime] = {}
        self._mutex = threading.Lock()

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def check(self, caller: str | None) -> bool:
        if self._window_seconds <= 0 or not caller:
            return True
        with self._mutex:
            last = self._last.get(caller)
        if last is None:
            return True
        return (self._clock.now() - last).total_seconds() >= self._window_seconds

    def consume(self, caller: str | None) -> None:
        if self._window_seconds <= 0 or not caller:
            return
        with self._mutex:
            self._last[caller] = self._clock.now()

    def try_acquire(self, caller: str | None) -> bool:
        if not self.check(caller):
            return False
        self.consume(caller)
        return True

    def retry_after(self, caller: str | None) -> int:
        """Whole seconds until ``caller``'s window reopens (0 when open)."""
        if self._window_seconds <= 0 or not caller:
            return 0
        with self._mutex:
            last = self._last.get(caller)
        if last is None:
            return 0
        remaining = self._window_seconds - (self._clock.now() - last).total_seconds()
        return max(0, math.ceil(remaining))

    def reset(self) -> None:
        with self._mutex:
            self._last.clear()
