"""
Tests for registration, login, token handling and the profile endpoints
"""
import time

import jwt
import pytest

from auth_utils import ALGORITHM, create_expired_jwt, create_jwt, decode_jwt, hash_password, verify_password
from config.secrets import DEV_JWT_SECRET, resolve_jwt_secret
from crud.subscription import SubscriptionRepository
from crud.user import UserRepository


@pytest.mark.asyncio
async def test_create_and_get_user(test_db):
    """
    Test creating a new user and retrieving it by email.

    This test verifies:
    - User creation via UserRepository.create_user
    - Case-insensitive retrieval via UserRepository.get_user_by_email
    - New users are not premium
    """
    user_repo = UserRepository(test_db)
    hashed_pwd = hash_password("test_password_123")

    created_user = await user_repo.create_user({
        "email": "Test@Example.com",
        "hashed_password": hashed_pwd,
        "first_name": "Luna",
    })
    await test_db.commit()

    assert created_user.email == "test@example.com"
    assert created_user.is_premium is False

    retrieved_user = await user_repo.get_user_by_email("TEST@example.com")
    assert retrieved_user is not None
    assert retrieved_user.id == created_user.id
    assert retrieved_user.first_name == "Luna"


def test_password_hashing():
    hashed = hash_password("secure_password_456")
    assert hashed != "secure_password_456"
    assert verify_password("secure_password_456", hashed) is True
    assert verify_password("wrong_password", hashed) is False


def test_jwt_payload_and_expiry():
    """Tokens carry id, email and the plan snapshot, and expire after 30 days."""
    payload = decode_jwt(create_jwt("user-1", "a@example.com", "premium_monthly"))
    assert payload["id"] == "user-1"
    assert payload["email"] == "a@example.com"
    assert payload["subscription_status"] == "premium_monthly"

    lifetime = payload["exp"] - int(time.time())
    assert abs(lifetime - 30 * 24 * 3600) <= 5

    assert decode_jwt(create_expired_jwt("user-1", "a@example.com")) is None
    assert decode_jwt("not-a-token") is None


def test_jwt_signed_with_other_secret_is_rejected():
    forged = jwt.encode({"id": "user-1", "email": "a@example.com"}, "another-secret", algorithm=ALGORITHM)
    assert decode_jwt(forged) is None


def test_resolve_jwt_secret():
    assert resolve_jwt_secret("configured", is_production=True) == "configured"
    assert resolve_jwt_secret(None, is_production=False) == DEV_JWT_SECRET
    with pytest.raises(RuntimeError):
        resolve_jwt_secret(None, is_production=True)
    with pytest.raises(RuntimeError):
        resolve_jwt_secret("", is_production=True)


@pytest.mark.asyncio
async def test_register_creates_free_subscription(client, session_factory):
    response = await client.post("/api/auth/register", json={
        "email": "New.User@Example.com",
        "password": "starlight-2024",
        "firstName": "Nova",
        "birthDate": "1990-05-15",
    })

    assert response.status_code == 201
    assert response.json()["success"] is True

    async with session_factory() as session:
        user = await UserRepository(session).get_user_by_email("new.user@example.com")
        assert user is not None
        assert user.birth_date == "1990-05-15"
        subscription = await SubscriptionRepository(session).get_by_user_id(user.id)
        assert subscription.plan_type == "free"
        assert subscription.status == "inactive"


@pytest.mark.asyncio
async def test_register_rejects_short_password_and_bad_email(client):
    response = await client.post("/api/auth/register", json={"email": "short@example.com", "password": "1234567"})
    assert response.status_code == 400
    assert response.json()["success"] is False

    response = await client.post("/api/auth/register", json={"email": "not-an-email", "password": "long-enough-pw"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_register_duplicate_email_is_generic(client, make_user):
    await make_user(email="taken@example.com")

    response = await client.post("/api/auth/register", json={"email": "taken@example.com", "password": "another-password"})

    assert response.status_code == 400
    assert "already" not in response.json()["error"].lower()


@pytest.mark.asyncio
async def test_login_returns_token_and_user(client, make_user):
    await make_user(email="login@example.com", password="secure_password_456")

    response = await client.post("/api/auth/login", json={"email": "Login@example.com", "password": "secure_password_456"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "login@example.com"
    assert body["user"]["subscription_status"] == "free"
    assert decode_jwt(body["token"])["email"] == "login@example.com"


@pytest.mark.asyncio
async def test_login_wrong_password(client, make_user):
    await make_user(email="login@example.com", password="secure_password_456")

    response = await client.post("/api/auth/login", json={"email": "login@example.com", "password": "wrong_password"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid email or password"}


@pytest.mark.asyncio
async def test_login_reports_premium_plan(client, premium_user):
    await premium_user(email="vip@example.com", password="secure_password_456", plan_type="premium_yearly")

    response = await client.post("/api/auth/login", json={"email": "vip@example.com", "password": "secure_password_456"})

    user = response.json()["user"]
    assert user["subscription_status"] == "premium_yearly"
    assert user["subscription_state"] == "active"
    assert user["current_period_end"] is not None


@pytest.mark.asyncio
async def test_profile_requires_token(client):
    response = await client.get("/api/auth/profile")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_profile_rejects_invalid_and_expired_tokens(client, make_user):
    user_id, _ = await make_user(email="expired@example.com")

    response = await client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 403

    expired = create_expired_jwt(user_id, "expired@example.com", expired_seconds_ago=60)
    response = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_profile_get_and_update(client, make_user):
    _, headers = await make_user(email="profile@example.com", first_name="Stella")

    response = await client.get("/api/auth/profile", headers=headers)
    assert response.status_code == 200
    assert response.json()["user"]["first_name"] == "Stella"

    response = await client.put("/api/auth/profile", headers=headers, json={
        "birthDate": "1985-11-02",
        "birthPlace": "Prague",
    })
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["first_name"] == "Stella"
    assert user["birth_date"] == "1985-11-02"
    assert user["birth_place"] == "Prague"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
