"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- In-memory SQLite session with all tables created
- Owner and firm profile fixtures
- A scripted completion provider
"""

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from karat.config import KaratConfig, set_config
from karat.db.models import Base, FirmProfile
from tests.helpers.factories import OWNER_ID, make_firm_profile
from tests.helpers.fake_provider import FakeCompletionProvider


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """In-memory SQLite database with every table created."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def firm_profile(db_session: Session) -> FirmProfile:
    """Firm profile for the default owner."""
    return make_firm_profile(db_session)


# ============================================================================
# Provider and Config Fixtures
# ============================================================================


@pytest.fixture
def fake_provider() -> FakeCompletionProvider:
    """Completion provider that replays queued results."""
    return FakeCompletionProvider()


@pytest.fixture
def karat_config() -> Generator[KaratConfig, None, None]:
    """Default configuration, installed as the process-wide config."""
    config = KaratConfig()
    set_config(config)
    yield config
    set_config(None)
