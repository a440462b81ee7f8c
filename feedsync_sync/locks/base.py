"""
FeedLock protocol -- non-blocking, cross-process mutual exclusion per feed.

Contract:
    ``try_acquire(key)`` returns immediately: True when this caller now
    holds the lock, False when another holder has it.  ``release(key)``
    is idempotent and must be called in a ``finally``.  ``renew(key)`` is
    called by the holder while it works; False means the lock was lost.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class FeedLock(Protocol):
    def try_acquire(self, key: str) -> bool:
        ...

    def renew(self, key: str) -> bool:
        ...

    def release(self, key: str) -> None:
        ...
