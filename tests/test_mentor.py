"""
Tests for the Star Mentor chat: free daily quota, context and history
"""
from datetime import datetime, timezone

import pytest

from crud.mentor import MentorMessageRepository
from crud.reading import ReadingRepository
from services.feature_policy import (
    FEATURE_MENTOR,
    FEATURE_POLICIES,
    MENTOR_DAILY_FREE_MESSAGES,
    MENTOR_TEASER_REPLY,
    FeaturePolicy,
    GateMode,
)
from services.journal_service import JournalWriter
from services.mentor_service import start_of_utc_day


def test_start_of_utc_day():
    start = start_of_utc_day(datetime(2025, 6, 1, 23, 59, tzinfo=timezone.utc))
    assert start == datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_chat_requires_login(client):
    response = await client.post("/api/mentor/chat", json={"message": "Hello"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_free_user_gets_teaser_after_quota(client, fake_gateway, make_user):
    """
    A free user gets MENTOR_DAILY_FREE_MESSAGES real answers; the next
    message returns the teaser without an AI call.
    """
    _, headers = await make_user()

    remaining = []
    for i in range(MENTOR_DAILY_FREE_MESSAGES):
        response = await client.post("/api/mentor/chat", json={"message": f"Question {i}"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["isTeaser"] is False
        remaining.append(response.json()["remainingFreeMessages"])
    assert remaining == [2, 1, 0]
    assert len(fake_gateway.calls) == MENTOR_DAILY_FREE_MESSAGES

    response = await client.post("/api/mentor/chat", json={"message": "One more?"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["isTeaser"] is True
    assert body["response"] == MENTOR_TEASER_REPLY
    assert body["remainingFreeMessages"] == 0
    assert body["cta"]["url"] == "/pricing"
    assert len(fake_gateway.calls) == MENTOR_DAILY_FREE_MESSAGES


@pytest.mark.asyncio
async def test_premium_user_is_unlimited(client, fake_gateway, premium_user):
    _, headers = await premium_user()

    for i in range(MENTOR_DAILY_FREE_MESSAGES + 2):
        response = await client.post("/api/mentor/chat", json={"message": f"Question {i}"}, headers=headers)
        body = response.json()
        assert body["isTeaser"] is False
        assert "remainingFreeMessages" not in body

    assert len(fake_gateway.calls) == MENTOR_DAILY_FREE_MESSAGES + 2


@pytest.mark.asyncio
async def test_failed_generation_does_not_use_quota(client, fake_gateway, make_user):
    _, headers = await make_user()

    fake_gateway.fail = True
    response = await client.post("/api/mentor/chat", json={"message": "Hello?"}, headers=headers)
    assert response.status_code == 503

    fake_gateway.fail = False
    response = await client.post("/api/mentor/chat", json={"message": "Hello again"}, headers=headers)
    assert response.json()["remainingFreeMessages"] == MENTOR_DAILY_FREE_MESSAGES - 1


@pytest.mark.asyncio
async def test_chat_sends_history_and_reading_context(client, fake_gateway, session_factory, premium_user):
    user_id, headers = await premium_user(first_name="Luna", birth_date="1990-05-15")
    async with session_factory() as session:
        await ReadingRepository(session).create(user_id, "numerology", {"lifePath": 7, "destiny": 5})
        await MentorMessageRepository(session).add(user_id, "user", "Earlier question")
        await MentorMessageRepository(session).add(user_id, "mentor", "Earlier answer")
        await session.commit()

    await client.post("/api/mentor/chat", json={"message": "What now?"}, headers=headers)

    call = fake_gateway.calls[0]
    assert call["message"] == [
        {"role": "user", "content": "Earlier question"},
        {"role": "mentor", "content": "Earlier answer"},
        {"role": "user", "content": "What now?"},
    ]
    assert call["context_data"]["user_context"]["name"] == "Luna"
    assert call["context_data"]["user_context"]["zodiac_sign"] == "Taurus"
    assert "Numerology: life path 7, destiny 5" in call["context_data"]["app_context"]


@pytest.mark.asyncio
async def test_history_is_oldest_first(client, fake_gateway, premium_user):
    _, headers = await premium_user()
    fake_gateway.replies = ["First answer", "Second answer"]

    await client.post("/api/mentor/chat", json={"message": "First"}, headers=headers)
    await client.post("/api/mentor/chat", json={"message": "Second"}, headers=headers)

    response = await client.get("/api/mentor/history", headers=headers)

    assert response.status_code == 200
    history = [(m["role"], m["content"]) for m in response.json()["history"]]
    assert history == [
        ("user", "First"),
        ("mentor", "First answer"),
        ("user", "Second"),
        ("mentor", "Second answer"),
    ]


@pytest.mark.asyncio
async def test_quota_comes_from_the_policy_table(client, fake_gateway, make_user, monkeypatch):
    monkeypatch.setitem(FEATURE_POLICIES, FEATURE_MENTOR, FeaturePolicy(GateMode.SOFT_QUOTA, daily_free_quota=1))
    _, headers = await make_user()

    first = await client.post("/api/mentor/chat", json={"message": "Only one?"}, headers=headers)
    second = await client.post("/api/mentor/chat", json={"message": "Another?"}, headers=headers)

    assert first.json()["isTeaser"] is False
    assert first.json()["remainingFreeMessages"] == 0
    assert second.json()["isTeaser"] is True
    assert len(fake_gateway.calls) == 1


@pytest.mark.asyncio
async def test_journal_writes_only_the_mentor_reply(session_factory, make_user):
    user_id, _ = await make_user()

    await JournalWriter(session_factory).save_mentor_reply(user_id, "The cards favor patience.")

    async with session_factory() as session:
        history = await MentorMessageRepository(session).history(user_id)
    assert [(m.role, m.content) for m in history] == [("mentor", "The cards favor patience.")]
