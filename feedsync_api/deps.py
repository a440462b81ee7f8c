"""
Service container and FastAPI dependencies.

``SyncServices`` bundles everything the routes need.  ``create_app``
stores one on ``app.state.services``; tests build their own with an
in-memory engine, a DeterministicClock and static source adapters.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from fastapi import HTTPException, Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from feedsync_api.auth import SessionAuthenticator, TokenSessionAuthenticator, verify_trigger_secret
from feedsync_api.ratelimit import InMemoryRateLimiter, RateLimiter
from feedsync_config.schema import SyncSettings
from feedsync_ingestion.adapters import SourceAdapter
from feedsync_kernel.domain.clock import Clock, SystemClock
from feedsync_sync.locks import FeedLock, build_feed_lock
from feedsync_sync.services.executor import SyncExecutor
from feedsync_sync.services.preview import PreviewEngine


@dataclass
class SyncServices:
    settings: SyncSettings
    session_factory: sessionmaker[Session]
    executor: SyncExecutor
    preview: PreviewEngine
    authenticator: SessionAuthenticator
    trigger_limiter: RateLimiter
    confirm_limiter: RateLimiter
    preview_limiter: RateLimiter


def build_services(
    settings: SyncSettings,
    engine: Engine,
    *,
    session_factory: sessionmaker[Session] | None = None,
    lock: FeedLock | None = None,
    adapters: Mapping[str, SourceAdapter] | None = None,
    authenticator: SessionAuthenticator | None = None,
    clock: Clock | None = None,
) -> SyncServices:
    """Wire executor, preview engine, limiters and authenticator for ``settings``."""
    clock = clock or SystemClock()
    session_factory = session_factory or sessionmaker(bind=engine, expire_on_commit=False)
    lock = lock or build_feed_lock(engine, settings.lock, clock)
    limits = settings.rate_limits
    return SyncServices(
        settings=settings,
        session_factory=session_factory,
        executor=SyncExecutor(settings, session_factory, lock, adapters=adapters, clock=clock),
        preview=PreviewEngine(settings, session_factory, adapters=adapters),
        authenticator=authenticator or TokenSessionAuthenticator(settings.session_tokens),
        trigger_limiter=InMemoryRateLimiter(limits.trigger_seconds, clock),
        confirm_limiter=InMemoryRateLimiter(limits.confirm_seconds, clock),
        preview_limiter=InMemoryRateLimiter(limits.preview_seconds, clock),
    )


def get_services(request: Request) -> SyncServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("SyncServices not configured on app.state")
    return services


def require_trigger_secret(request: Request) -> str:
    """Dependency for the scheduled trigger; returns the actor name."""
    services = get_services(request)
    if not verify_trigger_secret(request, services.settings.trigger_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return "cron"


def require_session(request: Request) -> str:
    """Dependency for the UI endpoints; returns the actor name."""
    actor = get_services(request).authenticator.authenticate(request)
    if actor is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return actor
