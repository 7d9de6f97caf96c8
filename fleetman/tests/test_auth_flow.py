"""
Integration tests for the authentication flow.

Verifies Register -> Login -> Me, validation and token rejection rules.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, func

from fleetman.app.core.jwt import create_access_token
from fleetman.app.models.user import User


@pytest.mark.asyncio
async def test_register_creates_plain_user(client):
    response = await client.post("/api/auth/register", json={
        "username": "bob",
        "password": "password123"
    })
    assert response.status_code == 201
    data = response.json()
    assert data["username"] == "bob"
    assert data["role"] == "user"
    assert "password" not in data and "password_hash" not in data


@pytest.mark.asyncio
async def test_register_ignores_requested_role(client):
    """Registration cannot be used to mint an admin."""
    response = await client.post("/api/auth/register", json={
        "username": "sneaky",
        "password": "password123",
        "role": "admin"
    })
    assert response.status_code == 201
    assert response.json()["role"] == "user"


@pytest.mark.asyncio
async def test_register_duplicate_username_conflicts(client, db_session):
    payload = {"username": "carol", "password": "password123"}
    first = await client.post("/api/auth/register", json=payload)
    assert first.status_code == 201

    count_before = (await db_session.execute(select(func.count(User.id)))).scalar()

    second = await client.post("/api/auth/register", json=payload)
    assert second.status_code == 409
    assert second.json()["error_code"] == "ERR_CONFLICT_001"

    count_after = (await db_session.execute(select(func.count(User.id)))).scalar()
    assert count_after == count_before


@pytest.mark.asyncio
@pytest.mark.parametrize("payload, fragment", [
    ({"username": "a", "password": "password123"}, "must be at least 3 characters"),
    ({"username": "user@invalid", "password": "password123"}, "can only contain letters, numbers, and underscores"),
    ({"username": "valid_name", "password": "123"}, "Password must be at least 6 characters"),
])
async def test_register_validation(client, payload, fragment):
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 400
    data = response.json()
    assert data["error_code"] == "ERR_INVALID_INPUT"
    assert fragment in data["message"]


@pytest.mark.asyncio
async def test_register_missing_fields(client):
    response = await client.post("/api/auth/register", json={})
    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["details"]["errors"]}
    assert {"username", "password"} <= fields


@pytest.mark.asyncio
async def test_login_returns_token_role_and_username(client, admin_user):
    response = await client.post("/api/auth/login", json={
        "username": "admin",
        "password": "admin123"
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token"]
    assert data["role"] == "admin"
    assert data["username"] == "admin"
    assert data["user_id"] == admin_user.id


@pytest.mark.asyncio
async def test_login_wrong_password(client, admin_user):
    response = await client.post("/api/auth/login", json={
        "username": "admin",
        "password": "not-the-password"
    })
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_unknown_user(client):
    response = await client.post("/api/auth/login", json={
        "username": "ghost",
        "password": "whatever1"
    })
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_me_returns_token_identity(client, user_token):
    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {user_token}"})
    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "alice_user"
    assert data["role"] == "user"


@pytest.mark.asyncio
async def test_missing_token_rejected(client):
    response = await client.get("/api/cars")
    assert response.status_code == 401
    assert response.headers.get("www-authenticate") == "Bearer"


@pytest.mark.asyncio
async def test_token_signed_with_other_secret_rejected(client, admin_user):
    forged = create_access_token(
        {"sub": "admin", "user_id": admin_user.id, "role": "admin"},
        "some-other-secret-entirely-0123456789",
        "HS256",
        timedelta(days=1)
    )
    response = await client.get("/api/cars", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_rejected(client, admin_user, test_settings):
    expired = create_access_token(
        {"sub": "admin", "user_id": admin_user.id, "role": "admin"},
        test_settings.secret_key,
        "HS256",
        timedelta(minutes=-5)
    )
    response = await client.get("/api/cars", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_malformed_token_rejected(client):
    response = await client.get("/api/cars", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_user_cannot_reach_admin_routes(client, user_token):
    response = await client.get("/api/users", headers={"Authorization": f"Bearer {user_token}"})
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_login_attempts_are_audited(client, admin_user, admin_token):
    await client.post("/api/auth/login", json={"username": "admin", "password": "wrong-pass"})

    response = await client.get(
        "/api/audit-logs",
        params={"action": "LOGIN_FAILED"},
        headers={"Authorization": f"Bearer {admin_token}"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["logs"][0]["meta_data"] == {"reason": "Invalid password"}


@pytest.mark.asyncio
async def test_health_endpoints_are_public(client):
    root = await client.get("/health")
    api = await client.get("/api/health")
    assert root.status_code == 200 and root.json()["status"] == "healthy"
    assert api.status_code == 200
    assert root.headers.get("x-correlation-id")
