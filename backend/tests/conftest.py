"""
Pytest configuration for the exam access engine
"""
import fnmatch
import os
import sys

# settings are read at import time, so the environment goes first
os.environ.setdefault("SQLALCHEMY_DATABASE_URL", "sqlite://")
os.environ.setdefault("POLICY_CACHE_ENABLED", "false")
os.environ.setdefault("INCIDENT_COUNT_SCOPE", "session")

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from exam_access.core.cache import CacheManager
from exam_access.core.database import build_engine, create_db_and_tables, get_db
from exam_access.schemas.policy import Policy


@pytest.fixture(scope='function')
def engine(tmp_path):
    """Fresh SQLite file database per test; threads share it"""
    engine = build_engine(f"sqlite:///{tmp_path / 'exam_access.db'}")
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope='function')
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope='function')
def mock_cache():
    """Cache stand-in backed by a dict"""
    store = {}
    cache = MagicMock(spec=CacheManager)
    cache.get.side_effect = lambda key: store.get(key)

    def _set(key, value, ttl=None):
        store[key] = value
        return True

    def _delete_pattern(pattern):
        doomed = [key for key in store if fnmatch.fnmatchcase(key, pattern)]
        for key in doomed:
            del store[key]
        return len(doomed)

    cache.set.side_effect = _set
    cache.delete_pattern.side_effect = _delete_pattern
    cache.store = store
    return cache


@pytest.fixture
def policy():
    return Policy(
        max_attempts=3,
        max_security_incidents=5,
        enable_auto_suspend=True,
        additional_security_incidents_after_removal=3,
        additional_attempts_after_payment=2,
    )


@pytest.fixture(scope='function')
def app(session_factory):
    """FastAPI app wired to the per-test database"""
    from exam_access.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope='function')
def client(app):
    """FastAPI test client"""
    return TestClient(app, raise_server_exceptions=False)


def headers_for(user_id, role="student"):
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture
def student_headers():
    return headers_for("student-1")


@pytest.fixture
def admin_headers():
    return headers_for("admin-1", "admin")


@pytest.fixture
def payment_headers():
    return headers_for("payments", "payment_service")
