"""FastAPI server for feedsync.

Run with ``uvicorn feedsync_api.server:create_app --factory``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from feedsync_api.deps import SyncServices, build_services
from feedsync_api.errors import http_error_handler
from feedsync_api.routes import health, sync
from feedsync_config import load_settings
from feedsync_config.schema import SyncSettings
from feedsync_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from feedsync_kernel.logging_config import configure_logging, get_logger, sanitize_for_log

logger = get_logger("api.server")


def create_app(
    settings: SyncSettings | None = None,
    services: SyncServices | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    With ``services`` given (tests) the app uses them as-is.  Otherwise the
    lifespan loads settings, initializes the engine, creates missing tables
    and wires the services; the engine is disposed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owns_engine = False
        if getattr(app.state, "services", None) is None:
            configure_logging()
            resolved = settings or load_settings()
            engine = init_engine_from_url(resolved.database_url)
            create_tables(engine)
            logger.info(
                "settings_loaded",
                extra=sanitize_for_log({
                    "environment": resolved.environment,
                    "trigger_secret": resolved.trigger_secret,
                    "lock_backend": resolved.lock.backend,
                }),
            )
            app.state.services = build_services(
                resolved, engine, session_factory=get_session_factory(),
            )
            owns_engine = True
        logger.info("api_started", extra={"feeds": sorted(app.state.services.settings.feeds)})

        yield

        logger.info("api_stopped")
        if owns_engine:
            reset_engine()

    app = FastAPI(
        title="feedsync",
        description="Spreadsheet feed reconciliation into customer records",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(health.router, tags=["Health"])
    app.include_router(sync.router, prefix="/sync", tags=["Sync"])

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("feedsync_api.server:create_app", factory=True, host="0.0.0.0", port=8000)
