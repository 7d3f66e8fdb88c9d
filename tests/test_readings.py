"""
Tests for the reading journal, password change, admin API and newsletter
"""
import uuid

import pytest

from auth_utils import verify_password
from config.settings import settings
from crud.subscription import SubscriptionRepository
from crud.user import UserRepository
from services.premium_service import evaluate_subscription


@pytest.mark.asyncio
async def test_reading_lifecycle(client, make_user):
    _, headers = await make_user()

    response = await client.post("/api/user/readings", headers=headers, json={
        "type": "tarot",
        "data": {"cards": ["The Star"], "question": "Hope?"},
    })
    assert response.status_code == 201
    reading_id = response.json()["reading"]["id"]

    response = await client.get(f"/api/user/readings/{reading_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["reading"]["data"]["cards"] == ["The Star"]
    assert response.json()["reading"]["is_favorite"] is False

    response = await client.patch(f"/api/user/readings/{reading_id}/favorite", headers=headers)
    assert response.json()["is_favorite"] is True
    response = await client.patch(f"/api/user/readings/{reading_id}/favorite", headers=headers)
    assert response.json()["is_favorite"] is False

    response = await client.delete(f"/api/user/readings/{reading_id}", headers=headers)
    assert response.status_code == 200
    response = await client.get(f"/api/user/readings/{reading_id}", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_readings_are_private(client, make_user):
    _, owner_headers = await make_user()
    _, other_headers = await make_user()

    response = await client.post("/api/user/readings", headers=owner_headers, json={"type": "numerology", "data": {}})
    reading_id = response.json()["reading"]["id"]

    assert (await client.get(f"/api/user/readings/{reading_id}", headers=other_headers)).status_code == 404
    assert (await client.patch(f"/api/user/readings/{reading_id}/favorite", headers=other_headers)).status_code == 404
    assert (await client.delete(f"/api/user/readings/{reading_id}", headers=other_headers)).status_code == 404
    assert (await client.get("/api/user/readings", headers=other_headers)).json()["readings"] == []


@pytest.mark.asyncio
async def test_list_readings_filters_by_type(client, make_user):
    _, headers = await make_user()
    for reading_type in ("tarot", "horoscope", "tarot"):
        await client.post("/api/user/readings", headers=headers, json={"type": reading_type, "data": {}})

    response = await client.get("/api/user/readings", params={"type": "tarot"}, headers=headers)
    assert [r["type"] for r in response.json()["readings"]] == ["tarot", "tarot"]

    response = await client.get("/api/user/readings", params={"limit": 1}, headers=headers)
    assert len(response.json()["readings"]) == 1


@pytest.mark.asyncio
async def test_change_password(client, session_factory, make_user):
    user_id, headers = await make_user(password="old-password-1")

    response = await client.put("/api/user/password", headers=headers, json={
        "currentPassword": "wrong-password",
        "newPassword": "new-password-1",
    })
    assert response.status_code == 400

    response = await client.put("/api/user/password", headers=headers, json={
        "currentPassword": "old-password-1",
        "newPassword": "new-password-1",
    })
    assert response.status_code == 200

    async with session_factory() as session:
        user = await UserRepository(session).get_user_by_id(user_id)
    assert verify_password("new-password-1", user.hashed_password)


@pytest.mark.asyncio
async def test_admin_api_requires_admin(client, make_user):
    _, headers = await make_user()

    response = await client.get("/api/admin/users", headers=headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_override_subscription(client, session_factory, make_user, monkeypatch):
    monkeypatch.setattr(settings, "admin_emails", "root@example.com")
    _, admin_headers = await make_user(email="root@example.com")
    user_id, _ = await make_user(email="member@example.com")

    response = await client.get("/api/admin/users", headers=admin_headers)
    assert response.status_code == 200
    assert {u["email"] for u in response.json()["users"]} == {"root@example.com", "member@example.com"}

    response = await client.post(f"/api/admin/user/{user_id}/subscription", headers=admin_headers, json={"planType": "vip"})
    assert response.status_code == 200

    async with session_factory() as session:
        subscription = await SubscriptionRepository(session).get_by_user_id(user_id)
        user = await UserRepository(session).get_user_by_id(user_id)
    assert subscription.plan_type == "vip"
    assert evaluate_subscription(subscription) == (True, None)
    assert user.is_premium is True


@pytest.mark.asyncio
async def test_admin_override_validation(client, make_user, monkeypatch):
    monkeypatch.setattr(settings, "admin_emails", "root@example.com")
    _, admin_headers = await make_user(email="root@example.com")
    user_id, _ = await make_user()

    response = await client.post("/api/admin/user/not-a-uuid/subscription", headers=admin_headers, json={"planType": "vip"})
    assert response.status_code == 400

    response = await client.post(f"/api/admin/user/{user_id}/subscription", headers=admin_headers, json={"planType": "gold"})
    assert response.status_code == 400

    response = await client.post(f"/api/admin/user/{uuid.uuid4()}/subscription", headers=admin_headers, json={"planType": "vip"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_newsletter_subscribe(client):
    response = await client.post("/api/newsletter/subscribe", json={"email": "reader@example.com"})
    assert response.status_code == 201
    assert response.json()["success"] is True

    response = await client.post("/api/newsletter/subscribe", json={"email": "reader@example.com"})
    assert response.status_code == 409

    response = await client.post("/api/newsletter/subscribe", json={"email": "nope"})
    assert response.status_code == 400
