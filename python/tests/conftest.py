"""Pytest configuration and fixtures for Warmlight tests.

Test isolation strategy:
- Every test gets its own engine and a freshly created schema
- Without DATABASE_URL the engine is an in-memory SQLite database; with it
  (e.g. a throwaway PostgreSQL database) the schema is dropped and recreated
  around each test
- Chat traffic goes to a FakeChatTransport that records every message
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Settings require DATABASE_URL; default the suite to SQLite
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("WARMLIGHT_ENV", "test")
os.environ.setdefault("LOG_JSON", "false")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from warmlight.app import create_app
from warmlight.bot.dispatcher import UpdateDispatcher
from warmlight.config import Settings, clear_settings_cache
from warmlight.db.engine import create_db_engine
from warmlight.db.models import Base
from warmlight.db.session import create_session_factory, get_db
from warmlight.transport import FakeChatTransport


def get_test_database_url() -> str:
    return os.environ["DATABASE_URL"]


def make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    values = {
        "DATABASE_URL": get_test_database_url(),
        "WARMLIGHT_ENV": "test",
        "LOG_JSON": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Per-test engine with the schema created from the ORM metadata."""
    engine = create_db_engine(get_test_database_url(), timeout_ms=5000)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """A session on the test database. Service calls commit through it."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def transport() -> FakeChatTransport:
    return FakeChatTransport()


@pytest.fixture
def dispatcher(
    session_factory: sessionmaker[Session], transport: FakeChatTransport, settings: Settings
) -> UpdateDispatcher:
    return UpdateDispatcher(session_factory=session_factory, transport=transport, settings=settings)


@pytest.fixture
def client(
    session_factory: sessionmaker[Session], transport: FakeChatTransport, settings: Settings
) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the test database and the fake transport."""
    app = create_app(settings=settings, transport=transport, session_factory=session_factory)

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
