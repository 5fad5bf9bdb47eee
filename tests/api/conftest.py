"""API test fixtures.

The app is exercised without its lifespan so no file-backed database is
created; every request shares the in-memory ``db_session``.
"""

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from karat.api import main as api_main
from karat.api.dependencies import (
    get_app_config,
    get_completion_provider,
    get_mode_tracker,
    get_rate_limiter,
)
from karat.api.main import app
from karat.config import KaratConfig
from karat.db.connection import get_db
from karat.orchestrator.modes.resolver import ModeTransitionTracker
from karat.services.rate_limiter import RateLimiter
from tests.helpers.factories import OWNER_ID


@pytest.fixture
def app_config() -> KaratConfig:
    return KaratConfig()


@pytest.fixture
def client(db_session, fake_provider, app_config, monkeypatch):
    """TestClient wired to the in-memory database and scripted provider."""

    def override_get_db():
        yield db_session

    @contextmanager
    def fake_db_context():
        yield db_session

    limiter = RateLimiter(app_config.rate_limits)
    tracker = ModeTransitionTracker()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_completion_provider] = lambda: fake_provider
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_app_config] = lambda: app_config
    app.dependency_overrides[get_mode_tracker] = lambda: tracker
    monkeypatch.setattr(api_main, "get_db_context", fake_db_context)

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return {"X-User-Id": OWNER_ID}
