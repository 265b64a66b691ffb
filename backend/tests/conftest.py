"""
Shared fixtures for the sync API and client tests

Environment defaults are set before the package is imported so the engine
and token manager pick them up.
"""

import os

os.environ.setdefault("SYNC_AUTH_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["ENVIRONMENT"] = "production"
os.environ.pop("SYNC_DEBUG_ERRORS", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recordsync.core.security import auth_manager
from recordsync.database import Base, get_db
from recordsync.database import models  # noqa: F401
from recordsync.main import app
from recordsync.services.stores import LocalEntityStore, SyncQueueStore


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    """TestClient with the remote store swapped for the in-memory database"""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user_id: str):
    return {"Authorization": f"Bearer {auth_manager.issue_for_user(user_id)}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def alice():
    return auth_headers("user-alice")


@pytest.fixture
def bob():
    return auth_headers("user-bob")


@pytest.fixture
def client_db_path(tmp_path):
    return str(tmp_path / "client.db")


@pytest.fixture
def queue(client_db_path):
    return SyncQueueStore(client_db_path)


@pytest.fixture
def entities(client_db_path):
    return LocalEntityStore(client_db_path)
