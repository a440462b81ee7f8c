"""
AdvisoryFeedLock -- PostgreSQL session-level advisory locks.

Each acquired key pins one pooled connection for the duration of the run
and calls ``pg_try_advisory_lock``.  If the process dies the connection
drops and PostgreSQL frees the lock, so there is no stale-lock state to
clean up.
"""

from __future__ import annotations

import hashlib
import threading

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from feedsync_kernel.logging_config import get_logger

logger = get_logger("sync.lock.advisory")


def advisory_key(key: str) -> int:
    """Stable signed 64-bit lock id for a feed key."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class AdvisoryFeedLock:
    def __init__(self, engine: Engine):
        self._engine = engine
        self._held: dict[str, Connection] = {}
        self._mutex = threading.Lock()

    def try_acquire(self, key: str) -> bool:
        with self._mutex:
            if key in self._held:
                return False

        conn = self._engine.connect()
        try:
            acquired = bool(
                conn.execute(
                    text("SELECT pg_try_advisory_lock(:k)"), {"k": advisory_key(key)},
                ).scalar()
            )
            # The lock lives on the session, not the transaction.
            conn.commit()
        except SQLAlchemyError:
            conn.close()
            raise

        if not acquired:
            conn.close()
            logger.info("lock_contended", extra={"lock_key": key, "backend": "advisory"})
            return False

        with self._mutex:
            self._held[key] = conn
        logger.debug("lock_acquired", extra={"lock_key": key, "backend": "advisory"})
        return True

    def renew(self, key: str) -> bool:
        # Session-level locks do not expire while the connection is open.
        with self._mutex:
            return key in self._held

    def release(self, key: str) -> None:
        with self._mutex:
            conn = self._held.pop(key, None)
        if conn is None:
            return
        try:
            conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": advisory_key(key)})
            conn.commit()
        except SQLAlchemyError:
            # Dropping the connection frees the lock server-side.
            logger.warning("lock_release_failed", extra={"lock_key": key}, exc_info=True)
            conn.invalidate()
        finally:
            conn.close()
        logger.debug("lock_released", extra={"lock_key": key, "backend": "advisory"})
