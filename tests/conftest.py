"""
Test configuration and fixtures for the URL shortener.
This centralizes all test setup, making individual tests clean.

Every test gets its own SQLite file under tmp_path, so tests are isolated
and the concurrency tests exercise real cross-connection locking.
"""

import pytest
from fastapi.testclient import TestClient

from main import create_app
from clicklink_app.config import Settings
from clicklink_app.database.connection import Database
from clicklink_app.queue.strategies import InMemoryQueue
from clicklink_app.security import create_access_token
from clicklink_app.services.short_code_strategies import ShortCodeStrategy


class ScriptedShortCodeStrategy(ShortCodeStrategy):
    """Returns pre-set codes in order and remembers the requested lengths"""

    def __init__(self, codes):
        self.codes = list(codes)
        self.requested_lengths = []

    def generate(self, length: int) -> str:
        self.requested_lengths.append(length)
        return self.codes.pop(0)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        environment="test",
        debug=False,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        database_busy_timeout=30,
        queue_backend="memory",
        queue_worker_interval=0.05,
        aggregate_update_mode="inline",
        secret_key="test-secret-key-for-signing-tokens-0123456789",
    )


@pytest.fixture
def database(test_settings):
    """
    Create a fresh database for each test.
    """
    database = Database(test_settings.database_url, busy_timeout=test_settings.database_busy_timeout)
    database.create_all()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def db_session(database):
    db = database.session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest.fixture
def client(test_settings):
    """
    Create a test client running the full application lifespan.
    This is the main fixture that API tests will use.
    """
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(test_settings):
    """Build Authorization headers for a given user id"""
    def _headers(user_id: int = 1):
        token = create_access_token(user_id, test_settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers
