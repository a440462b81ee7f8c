"""
Pytest fixtures for the feedsync test suite.

Provides:
- Structured logging configured at DEBUG, LogContext cleared per test
- A file-backed SQLite database per test (tables created, engine disposed)
- A DeterministicClock
- A StaticSourceAdapter standing in for Google Sheets / CSV / XLSX
- Settings with one posvenda and one tax_form feed on the static source
- Executor and preview engine wired to all of the above
"""

import json
import logging
from io import StringIO

import pytest
from sqlalchemy.orm import Session, sessionmaker

from feedsync_config.schema import SyncSettings
from feedsync_kernel.db.engine import build_engine, create_tables, drop_tables
from feedsync_kernel.domain.clock import DeterministicClock
from feedsync_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from feedsync_sync.locks.lease import LeaseFeedLock
from feedsync_sync.services.executor import SyncExecutor
from feedsync_sync.services.preview import PreviewEngine
from tests.helpers import STATIC_KIND, StaticSourceAdapter, make_settings


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture feedsync logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, executor):
            executor.execute(POSVENDA_KEY)
            logs = captured_logs()
            assert any(r["message"] == "sync_run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("feedsync")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    """A fresh file-backed SQLite database with every table created."""
    eng = build_engine(f"sqlite:///{tmp_path / 'feedsync_test.db'}")
    create_tables(eng)
    yield eng
    drop_tables(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """A session for arranging and asserting; closed after the test."""
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Sources and settings
# =============================================================================


@pytest.fixture
def static_source() -> StaticSourceAdapter:
    return StaticSourceAdapter()


@pytest.fixture
def adapters(static_source) -> dict[str, StaticSourceAdapter]:
    return {STATIC_KIND: static_source}


@pytest.fixture
def settings() -> SyncSettings:
    return make_settings()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def lock(engine, clock) -> LeaseFeedLock:
    return LeaseFeedLock(engine, ttl_seconds=1800, clock=clock)


@pytest.fixture
def executor(settings, session_factory, lock, adapters, clock) -> SyncExecutor:
    return SyncExecutor(settings, session_factory, lock, adapters=adapters, clock=clock)


@pytest.fixture
def preview_engine(settings, session_factory, adapters) -> PreviewEngine:
    return PreviewEngine(settings, session_factory, adapters=adapters)
