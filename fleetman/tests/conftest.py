"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport

from fleetman.app.main import create_app
from fleetman.app.core.config import Settings
from fleetman.app.core.security import get_password_hash
from fleetman.app.db.session import Base
from fleetman.app.models.enums import UserRole
from fleetman.app.models.user import User

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_SECRET_KEY = "test-secret-key-for-fleetman-tests-0123456789"


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": TEST_DATABASE_URL,
        "secret_key": TEST_SECRET_KEY,
        "redis_url": "redis://localhost:6379/15",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def incr(self, key):
        if self._closed:
            return 0
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def test_settings():
    return make_settings()


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
async def app(test_settings, mock_redis):
    """Application wired to a fresh in-memory database and mock Redis."""
    application = create_app(test_settings)
    application.state.redis = mock_redis

    async with application.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield application

    async with application.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await application.state.engine.dispose()


@pytest.fixture
async def client(app):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(app):
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture
async def admin_user(db_session):
    """Admin row inserted directly (registration cannot create admins)."""
    admin = User(
        username="admin",
        password_hash=get_password_hash("admin123"),
        role=UserRole.ADMIN
    )
    db_session.add(admin)
    await db_session.commit()
    await db_session.refresh(admin)
    return admin


@pytest.fixture
async def admin_token(client, admin_user):
    """Log in as admin and return auth token."""
    response = await client.post("/api/auth/login", json={
        "username": "admin",
        "password": "admin123"
    })
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
async def user_token(client):
    """Register a regular user and return auth token."""
    response = await client.post("/api/auth/register", json={
        "username": "alice_user",
        "password": "password123"
    })
    assert response.status_code == 201

    response = await client.post("/api/auth/login", json={
        "username": "alice_user",
        "password": "password123"
    })
    assert response.status_code == 200
    return response.json()["token"]