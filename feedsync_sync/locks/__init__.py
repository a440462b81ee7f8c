"""Per-feed mutual-exclusion locks."""

from sqlalchemy.engine import Engine

from feedsync_config.schema import LockSettings
from feedsync_kernel.db.engine import is_postgres
from feedsync_kernel.domain.clock import Clock
from feedsync_sync.locks.advisory import AdvisoryFeedLock, advisory_key
from feedsync_sync.locks.base import FeedLock
from feedsync_sync.locks.lease import LeaseFeedLock


def build_feed_lock(
    engine: Engine,
    settings: LockSettings | None = None,
    clock: Clock | None = None,
) -> FeedLock:
    """Advisory locks on PostgreSQL, lease rows elsewhere, unless configured."""
    settings = settings or LockSettings()
    backend = settings.backend
    if backend == "auto":
        backend = "advisory" if is_postgres(engine) else "lease"
    if backend == "advisory":
        return AdvisoryFeedLock(engine)
    return LeaseFeedLock(engine, ttl_seconds=settings.lease_ttl_seconds, clock=clock)


__all__ = [
    "AdvisoryFeedLock",
    "FeedLock",
    "LeaseFeedLock",
    "advisory_key",
    "build_feed_lock",
]
