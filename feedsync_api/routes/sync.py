"""
Sync endpoints.

    POST /sync/{feed}           scheduled trigger (shared secret); ?dryRun=1
    POST /sync/{feed}/confirm   live run from the UI (session, rate-limited)
    POST /sync/{feed}/preview   dry preview from the UI (session, rate-limited)
    GET  /sync/{feed}/status    last-run state (session)

Handlers are plain ``def`` so runs execute in the threadpool.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select

from feedsync_api.auth import caller_ip
from feedsync_api.deps import SyncServices, get_services, require_session, require_trigger_secret
from feedsync_api.ratelimit import RateLimiter
from feedsync_api.schemas import PreviewResponse, SyncRunResponse, SyncStatusResponse
from feedsync_kernel.exceptions import (
    FeedNotConfiguredError,
    LockContentionError,
    RateLimitedError,
    SourceFetchError,
)
from feedsync_kernel.logging_config import get_logger, sanitize_error_message
from feedsync_kernel.models.sync_state import SyncState
from feedsync_sync.domain.types import RunResult, RunTrigger

logger = get_logger("api.sync")

router = APIRouter()

LOCK_BUSY = "sync_already_running"


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _rate_limited(limiter: RateLimiter, caller: str | None) -> JSONResponse:
    retry_after = getattr(limiter, "retry_after", None)
    wait = retry_after(caller) if retry_after else 60
    exc = RateLimitedError(caller or "unknown", wait)
    logger.info("sync_rate_limited", extra={"ip": caller, "error_code": exc.code})
    return _error(429, str(exc), {"Retry-After": str(wait)})


def _run_response(result: RunResult, include_run_id: bool = False) -> JSONResponse:
    body = SyncRunResponse.from_result(result, include_run_id=include_run_id)
    return JSONResponse(
        status_code=500 if result.status == "error" else 200,
        content=body.to_payload(),
    )


def _unexpected(services: SyncServices, feed_key: str, exc: Exception) -> JSONResponse:
    logger.exception("sync_request_failed", extra={"feed_key": feed_key})
    message = sanitize_error_message(str(exc), services.settings.is_development)
    return JSONResponse(status_code=500, content={"status": "error", "error": message})


# =============================================================================
# Scheduled trigger
# =============================================================================


@router.post("/{feed_key}")
def trigger_sync(
    feed_key: str,
    request: Request,
    dry_run: str | None = Query(None, alias="dryRun"),
    actor: str = Depends(require_trigger_secret),
    services: SyncServices = Depends(get_services),
) -> JSONResponse:
    try:
        services.settings.feed(feed_key)
    except FeedNotConfiguredError as exc:
        return _error(404, str(exc))

    ip = caller_ip(request)
    limiter = services.trigger_limiter
    if not limiter.check(ip):
        return _rate_limited(limiter, ip)

    try:
        result = services.executor.execute(
            feed_key,
            dry_run=dry_run == "1",
            trigger=RunTrigger.CRON,
            actor=actor,
            on_locked=lambda: limiter.consume(ip),
        )
    except LockContentionError:
        return _error(409, LOCK_BUSY)
    except Exception as exc:
        return _unexpected(services, feed_key, exc)

    return _run_response(result)


# =============================================================================
# UI endpoints
# =============================================================================


@router.post("/{feed_key}/confirm")
def confirm_sync(
    feed_key: str,
    request: Request,
    actor: str = Depends(require_session),
    services: SyncServices = Depends(get_services),
) -> JSONResponse:
    try:
        services.settings.feed(feed_key)
    except FeedNotConfiguredError as exc:
        return _error(404, str(exc))

    ip = caller_ip(request)
    limiter = services.confirm_limiter
    if not limiter.check(ip):
        return _rate_limited(limiter, ip)

    logger.info("sync_manual_attempt", extra={"feed_key": feed_key, "ip": ip, "actor": actor})
    try:
        result = services.executor.execute(
            feed_key,
            trigger=RunTrigger.MANUAL,
            actor=actor,
            on_locked=lambda: limiter.consume(ip),
        )
    except LockContentionError:
        return _error(409, LOCK_BUSY)
    except Exception as exc:
        return _unexpected(services, feed_key, exc)

    return _run_response(result, include_run_id=True)


@router.post("/{feed_key}/preview")
def preview_sync(
    feed_key: str,
    request: Request,
    actor: str = Depends(require_session),
    services: SyncServices = Depends(get_services),
) -> JSONResponse:
    try:
        services.settings.feed(feed_key)
    except FeedNotConfiguredError as exc:
        return _error(404, str(exc))

    ip = caller_ip(request)
    if not services.preview_limiter.try_acquire(ip):
        return _rate_limited(services.preview_limiter, ip)

    try:
        result = services.preview.preview(feed_key)
    except SourceFetchError as exc:
        logger.warning("sync_preview_failed", extra={"feed_key": feed_key, "reason": exc.reason})
        message = sanitize_error_message(str(exc), services.settings.is_development)
        return _error(500, message)
    except Exception as exc:
        return _unexpected(services, feed_key, exc)

    return JSONResponse(content=PreviewResponse.from_result(result).to_payload())


@router.get("/{feed_key}/status", dependencies=[Depends(require_session)])
def sync_status(
    feed_key: str,
    services: SyncServices = Depends(get_services),
) -> JSONResponse:
    try:
        feed = services.settings.feed(feed_key)
    except FeedNotConfiguredError as exc:
        return _error(404, str(exc))

    with services.session_factory() as session:
        state = session.execute(
            select(SyncState).where(SyncState.key == feed.key)
        ).scalar_one_or_none()
        body = SyncStatusResponse(**state.to_dict()) if state else SyncStatusResponse()

    return JSONResponse(content=body.to_payload())
