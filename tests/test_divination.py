"""
Tests for the crystal ball, natal chart and numerology endpoints and the
reading journal they feed
"""
import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from crud.reading import ReadingRepository
from database_models import NumerologyCacheEntry
from main import app
from services.ai_gateway import MAX_TURN_CHARS, normalize_turns
from services.astrology import calculate_moon_phase, zodiac_sign_for
from services.journal_service import JournalWriter, get_journal_writer
from services.numerology_service import (
    calculate_life_path,
    core_numbers,
    letter_value,
    numerology_cache_key,
    reduce_to_single_digit,
)


def test_reduce_to_single_digit_keeps_master_numbers():
    assert reduce_to_single_digit(38) == 11
    assert reduce_to_single_digit(22) == 22
    assert reduce_to_single_digit(33) == 33
    assert reduce_to_single_digit(1990) == 1
    assert reduce_to_single_digit(29, preserve_master=False) == 2


def test_core_numbers():
    assert letter_value("A") == 1
    assert letter_value("I") == 9
    assert letter_value("J") == 1
    assert letter_value("Z") == 8

    assert core_numbers("Anna Novák", "1990-05-15") == {
        "life_path": 3,
        "destiny": 3,
        "soul": 9,
        "personality": 3,
    }
    assert calculate_life_path("not a date") == 0


def test_numerology_cache_key_depends_on_every_input():
    numbers = {"life_path": 3, "destiny": 3, "soul": 9, "personality": 3}
    base = numerology_cache_key("Anna", "1990-05-15", None, numbers)
    assert base == numerology_cache_key("Anna", "1990-05-15", None, dict(numbers))
    assert base != numerology_cache_key("Anna", "1990-05-15", "08:30", numbers)
    assert base != numerology_cache_key("Anna", "1990-05-15", None, {**numbers, "soul": 7})


def test_zodiac_and_moon_phase():
    assert zodiac_sign_for("1990-05-15") == "Taurus"
    assert zodiac_sign_for("1990-01-05") == "Capricorn"
    assert zodiac_sign_for("1990-12-25") == "Capricorn"
    assert zodiac_sign_for("garbage") is None
    assert calculate_moon_phase().split(" (")[0] in {
        "New Moon", "Waxing Crescent", "First Quarter", "Waxing Gibbous",
        "Full Moon", "Waning Gibbous", "Last Quarter", "Waning Crescent",
    }


@pytest.mark.asyncio
async def test_crystal_ball_answers_anonymous_caller(client, fake_gateway):
    response = await client.post("/api/crystal-ball", json={"question": "Will I find my way?"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "response": fake_gateway.default_reply}
    call = fake_gateway.calls[0]
    assert call["message"] == [{"role": "user", "content": "Will I find my way?"}]
    assert "{MOON_PHASE}" not in call["system_instruction"]


@pytest.mark.asyncio
async def test_crystal_ball_includes_session_history(client, fake_gateway):
    await client.post("/api/crystal-ball", json={"question": "And love?", "history": ["Will I move?"]})

    assert fake_gateway.calls[0]["message"] == [
        {"role": "user", "content": "Earlier question in this session: Will I move?"},
        {"role": "user", "content": "And love?"},
    ]


@pytest.mark.asyncio
async def test_long_history_never_hides_the_question(client, fake_gateway):
    """The new question reaches the model intact however long the session history is."""
    question = "What is my real question?"

    response = await client.post("/api/crystal-ball", json={"question": question, "history": ["h" * 100] * 20})

    assert response.status_code == 200
    turns = normalize_turns(fake_gateway.calls[0]["message"])
    assert len(turns) == 21
    assert turns[-1] == {"role": "user", "text": question}
    assert all(len(turn["text"]) <= MAX_TURN_CHARS for turn in turns)


@pytest.mark.asyncio
async def test_crystal_ball_validation(client, fake_gateway):
    response = await client.post("/api/crystal-ball", json={})
    assert response.status_code == 400
    assert response.json()["success"] is False

    response = await client.post("/api/crystal-ball", json={"question": "   "})
    assert response.status_code == 400

    response = await client.post("/api/crystal-ball", json={"question": "q" * 1000})
    assert response.status_code == 200

    response = await client.post("/api/crystal-ball", json={"question": "q" * 2001})
    assert response.status_code == 400
    assert len(fake_gateway.calls) == 1


@pytest.mark.asyncio
async def test_ai_outage_returns_themed_message(client, fake_gateway):
    fake_gateway.fail = True

    response = await client.post("/api/crystal-ball", json={"question": "Anyone there?"})

    assert response.status_code == 503
    assert response.json() == {
        "success": False,
        "error": "The crystal ball is veiled in mist... Please try again in a moment.",
    }


@pytest.mark.asyncio
async def test_authenticated_reading_is_journaled(client, session_factory, make_user):
    user_id, headers = await make_user()

    response = await client.post("/api/crystal-ball", json={"question": "Is change coming?"}, headers=headers)
    assert response.status_code == 200

    async with session_factory() as session:
        readings = await ReadingRepository(session).list_for_user(user_id)
    assert len(readings) == 1
    assert readings[0].type == "crystal-ball"
    assert readings[0].data["question"] == "Is change coming?"


@pytest.mark.asyncio
async def test_failed_journal_write_does_not_fail_request(client, fake_gateway, make_user, caplog):
    """A reading that cannot be saved is logged; the caller still gets the answer."""
    def broken_session_factory():
        raise OperationalError("INSERT INTO readings", {}, Exception("database is gone"))

    app.dependency_overrides[get_journal_writer] = lambda: JournalWriter(broken_session_factory)
    user_id, headers = await make_user()

    with caplog.at_level(logging.ERROR, logger="services.journal_service"):
        response = await client.post("/api/crystal-ball", json={"question": "Is change coming?"}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "response": fake_gateway.default_reply}
    assert f"Failed to save crystal-ball reading for user {user_id}" in caplog.text


@pytest.mark.asyncio
async def test_natal_chart(client, fake_gateway):
    response = await client.post("/api/natal-chart", json={
        "name": "Luna",
        "birthDate": "1990-05-15",
        "birthPlace": "Olomouc",
    })

    assert response.status_code == 200
    message = fake_gateway.calls[0]["message"]
    assert "Birth place: Olomouc" in message
    assert "Birth time: unknown" in message


@pytest.mark.asyncio
async def test_tarot_summary(client, fake_gateway):
    response = await client.post("/api/tarot-summary", json={
        "spreadType": "Celtic cross",
        "cards": [{"name": "The Tower", "position": "Past", "meaning": "upheaval"}],
    })

    assert response.status_code == 200
    assert "Past: The Tower (upheaval)" in fake_gateway.calls[0]["message"]


@pytest.mark.asyncio
async def test_numerology_is_cached(client, fake_gateway, test_db):
    body = {"name": "Anna Novák", "birthDate": "1990-05-15"}

    first = await client.post("/api/numerology", json=body)
    second = await client.post("/api/numerology", json=body)

    assert first.status_code == 200
    assert first.json()["cached"] is False
    assert second.json()["cached"] is True
    assert first.json()["response"] == second.json()["response"]
    assert first.json()["numbers"] == {"lifePath": 3, "destiny": 3, "soul": 9, "personality": 3}
    assert len(fake_gateway.calls) == 1
    assert await test_db.scalar(select(func.count(NumerologyCacheEntry.id))) == 1


@pytest.mark.asyncio
async def test_numerology_client_numbers_change_the_key(client, fake_gateway):
    await client.post("/api/numerology", json={"name": "Anna", "birthDate": "1990-05-15"})
    response = await client.post("/api/numerology", json={"name": "Anna", "birthDate": "1990-05-15", "lifePath": 22})

    assert response.json()["cached"] is False
    assert response.json()["numbers"]["lifePath"] == 22
    assert len(fake_gateway.calls) == 2
