"""Pytest configuration and fixtures for beta reader tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite database built from the ORM
  metadata (StaticPool, so all sessions share the one connection)
- Foreign keys are enforced so cascades behave as on PostgreSQL
- The language model is replaced by ScriptedAdapter behind the real LLMClient
- HTTP tests go through the real auth middleware with MockJwtVerifier tokens
"""

import os

# Settings are read once; provide test values before anything imports them.
os.environ.setdefault("BETA_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("AUTH0_DOMAIN", "beta-test.eu.auth0.com")
os.environ.setdefault("AUTH0_CLIENT_ID", "test-client-id")
os.environ.setdefault("LOG_FORMAT", "console")

from collections.abc import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from betareader.app import add_request_id_middleware, create_app  # noqa: E402
from betareader.db.models import Base  # noqa: E402
from betareader.db.session import create_session_factory, get_db  # noqa: E402
from betareader.services.profiles import seed_system_profiles  # noqa: E402
from tests.fakes import ScriptedAdapter, default_responders, make_llm_client  # noqa: E402
from tests.helpers import make_user  # noqa: E402
from tests.support.test_verifier import MockJwtVerifier  # noqa: E402


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """A fresh in-memory database with the full schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for service-level tests. System reviewer profiles are seeded."""
    session = session_factory()
    seed_system_profiles(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def viewer_id(db_session: Session) -> int:
    return make_user(db_session, email="writer@example.com")


@pytest.fixture
def other_viewer_id(db_session: Session) -> int:
    return make_user(db_session, email="other@example.com")


@pytest.fixture
def llm_adapter() -> ScriptedAdapter:
    """Scripted model; tests may replace entries in ``llm_adapter.responders``."""
    return ScriptedAdapter(default_responders())


@pytest.fixture
def llm(llm_adapter: ScriptedAdapter):
    return make_llm_client(llm_adapter)


@pytest.fixture
def app(session_factory: sessionmaker[Session], llm) -> FastAPI:
    """Full application: auth middleware with the test verifier, request ids,
    and get_db bound to the per-test database."""
    app = create_app(
        token_verifier=MockJwtVerifier(),
        session_factory=session_factory,
        llm_client=llm,
    )
    add_request_id_middleware(app, log_requests=False)

    def _get_test_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client; entering it runs the lifespan, which seeds system profiles."""
    with TestClient(app) as client:
        yield client
