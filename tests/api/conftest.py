"""Fixtures for the HTTP surface: an app wired to the test database."""

import pytest
from fastapi.testclient import TestClient

from feedsync_api.deps import build_services
from feedsync_api.server import create_app


@pytest.fixture
def services(settings, engine, session_factory, lock, adapters, clock):
    return build_services(
        settings,
        engine,
        session_factory=session_factory,
        lock=lock,
        adapters=adapters,
        clock=clock,
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as test_client:
        yield test_client
