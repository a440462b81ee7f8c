"""
LeaseFeedLock -- lock rows with expiry, for stores without advisory locks.

Acquisition deletes expired leases for the key, then INSERTs a row under
the unique ``sync_leases.key``; a duplicate-key failure means another
holder is active.  A crashed holder's lease is reclaimed once it expires;
a live holder keeps its lease by calling ``renew`` as it works, which
pushes ``expires_at`` forward at most once per half TTL.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from feedsync_kernel.domain.clock import Clock, SystemClock
from feedsync_kernel.logging_config import get_logger
from feedsync_kernel.models.sync_state import SyncLease

logger = get_logger("sync.lock.lease")

DEFAULT_LEASE_TTL_SECONDS = 1800


class LeaseFeedLock:
    def __init__(
        self,
        engine: Engine,
        ttl_seconds: int = DEFAULT_LEASE_TTL_SECONDS,
        clock: Clock | None = None,
    ):
        self._engine = engine
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or SystemClock()
        self._holders: dict[str, str] = {}
        self._renewed_at: dict[str, datetime] = {}

    def try_acquire(self, key: str) -> bool:
        now = self._clock.now()
        holder = uuid4().hex
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    delete(SyncLease).where(
                        SyncLease.key == key,
                        SyncLease.expires_at < now,
                    )
                )
                conn.execute(
                    insert(SyncLease).values(
                        id=uuid4(),
                        key=key,
                        holder=holder,
                        acquired_at=now,
                        expires_at=now + self._ttl,
                    )
                )
        except IntegrityError:
            logger.info("lock_contended", extra={"lock_key": key, "backend": "lease"})
            return False

        self._holders[key] = holder
        self._renewed_at[key] = now
        logger.debug("lock_acquired", extra={"lock_key": key, "backend": "lease"})
        return True

    def renew(self, key: str) -> bool:
        holder = self._holders.get(key)
        if holder is None:
            return False
        now = self._clock.now()
        if now - self._renewed_at[key] < self._ttl / 2:
            return True

        with self._engine.begin() as conn:
            result = conn.execute(
                update(SyncLease)
                .where(SyncLease.key == key, SyncLease.holder == holder)
                .values(expires_at=now + self._ttl)
            )
        if result.rowcount != 1:
            self._holders.pop(key, None)
            self._renewed_at.pop(key, None)
            logger.warning("lock_lost", extra={"lock_key": key, "backend": "lease"})
            return False

        self._renewed_at[key] = now
        logger.debug("lock_renewed", extra={"lock_key": key, "backend": "lease"})
        return True

    def release(self, key: str) -> None:
        holder = self._holders.pop(key, None)
        self._renewed_at.pop(key, None)
        if holder is None:
            return
        with self._engine.begin() as conn:
            conn.execute(
                delete(SyncLease).where(SyncLease.key == key, SyncLease.holder == holder)
            )
        logger.debug("lock_released", extra={"lock_key": key, "backend": "lease"})
