"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test
- Agents plus JWT token minting for authenticated tests
- HTTPX AsyncClient bound to the app with a broadcast bus attached
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Must be set before any app module reads settings
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["TESTING"] = "1"
os.environ.setdefault("SHOPIFY_STORE", "")
os.environ.setdefault("QUO_WEBHOOK_SECRET", "")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.broadcast import BroadcastBus
from app.core.deps import get_db
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import AgentRole
from app.db.models import Agent
from app.db.session import SessionLocal, engine
from app.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session on a freshly created schema.

    The in-memory database lives on one shared connection, so dropping the
    tables afterwards is enough to isolate tests from each other.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def file_db(tmp_path):
    """
    File-backed SQLite with a real connection pool.

    Yields ``(engine, session_factory)`` for tests that need separate
    connections, e.g. one session per thread.
    """
    file_engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'supportbase.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=file_engine)
    yield file_engine, sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()


def _make_agent(db: Session, **overrides) -> Agent:
    fields = {
        "name": "Test Agent",
        "email": f"agent-{uuid.uuid4().hex[:8]}@test.com",
        "role": AgentRole.AGENT,
    }
    fields.update(overrides)
    agent = Agent(**fields)
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent


@pytest.fixture(scope="function")
def test_agent(db: Session) -> Agent:
    return _make_agent(db)


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    agent: Agent
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture(scope="function")
def test_auth(test_agent: Agent) -> TestAuth:
    token = create_session_token(
        agent_id=test_agent.id,
        role=test_agent.role.value,
        token_version=test_agent.token_version,
    )
    return TestAuth(agent=test_agent, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def bus() -> Generator[BroadcastBus, None, None]:
    """Bus with keep-alive disabled so tests never wait on timers."""
    bus = BroadcastBus(keepalive_interval=None)
    previous = getattr(app.state, "broadcast_bus", None)
    app.state.broadcast_bus = bus
    yield bus
    bus.shutdown()
    app.state.broadcast_bus = previous


@pytest.fixture(scope="function")
async def client(db: Session, bus: BroadcastBus) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for webhook and public endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    bus: BroadcastBus,
    test_auth: TestAuth,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient carrying the test agent's bearer token."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=test_auth.headers,
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_agent(db: Session):
    """Factory for extra agents: ``make_agent(push_token=..., is_available=False)``."""
    def factory(**overrides) -> Agent:
        return _make_agent(db, **overrides)
    return factory
