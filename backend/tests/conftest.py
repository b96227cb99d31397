"""
Pytest configuration and fixtures
"""

import os
import tempfile
from typing import Dict
from uuid import uuid4

import pytest

# Set test environment variables before importing app
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"friendvault_test_{os.getpid()}.db")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_PATH}"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["METRICS_PUBLIC"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CUSTODIAL_ENCRYPTION_KEY"] = "test-custodial-key-for-testing-only"
os.environ["MIN_NATIVE_RESERVE"] = "1"
os.environ["VOTE_MAX_ATTEMPTS"] = "5"

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from friendvault.infrastructure.database import Base, SessionLocal, engine, get_db
import friendvault.models  # noqa: F401
from friendvault.main import app
from friendvault.api.dependencies import get_ledger_client
from friendvault.core.users.models import User, UserStatus
from tests.helpers import ANA, BEN, CHLOE, MALLORY, InMemoryLedger, build_services


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Create a fresh database session for each test.

    File-backed SQLite so worker threads in concurrency tests can open their
    own sessions on the same database.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def users(db_session: Session) -> Dict[str, User]:
    """ACTIVE platform users ana, ben, chloe; mallory is suspended"""
    created = {}
    for email in (ANA, BEN, CHLOE):
        created[email] = User(id=uuid4(), email=email, status=UserStatus.ACTIVE)
    created[MALLORY] = User(id=uuid4(), email=MALLORY, status=UserStatus.SUSPENDED)
    db_session.add_all(created.values())
    db_session.commit()
    return created


@pytest.fixture
def services(db_session: Session, ledger: InMemoryLedger, users) -> dict:
    return build_services(db_session, ledger)


@pytest.fixture
def vault(services, ledger: InMemoryLedger):
    """Vault [ana, ben, chloe] created by ana, funded with 100 XLM"""
    summary = services["registry"].create_vault(
        name="Trip to Lisbon",
        creator=ANA,
        member_identities=[BEN, CHLOE],
        description="Summer trip",
    )
    ledger.fund(summary.custodial_address, "100")
    return summary


@pytest.fixture(scope="function")
def client(db_session: Session, ledger: InMemoryLedger, users):
    """
    Create FastAPI test client with dependency overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger_client] = lambda: ledger

    yield TestClient(app)

    app.dependency_overrides.clear()


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    if os.path.exists(_TEST_DB_PATH):
        os.remove(_TEST_DB_PATH)
