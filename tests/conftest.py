"""
Pytest configuration and fixtures for testing
"""
import os

# Settings are read at import time, so the environment must be ready first
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("REDIS_URL", None)
os.environ.pop("RENDER", None)

from datetime import timedelta
from typing import List, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auth_utils import create_jwt, hash_password
from crud.subscription import SubscriptionRepository
from crud.user import UserRepository
from database import Base, get_db
from main import app
from services.ai_gateway import AIServiceUnavailableError, get_ai_gateway
from services.journal_service import JournalWriter, get_journal_writer
from utils.shared_utils import utcnow

# In-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeGateway:
    """
    Stand-in for AIGateway. Records every call and answers with the queued
    replies, then with ``default_reply``.
    """

    def __init__(self, default_reply: str = "The stars are aligned in your favor."):
        self.default_reply = default_reply
        self.replies: List[str] = []
        self.calls: List[dict] = []
        self.fail = False

    async def generate(self, system_instruction, message_or_history, context_data=None):
        self.calls.append({
            "system_instruction": system_instruction,
            "message": message_or_history,
            "context_data": context_data,
        })
        if self.fail:
            raise AIServiceUnavailableError("AI service unavailable")
        if self.replies:
            return self.replies.pop(0)
        return self.default_reply


@pytest.fixture
async def test_engine():
    """
    Fixture that provides an isolated, in-memory SQLite engine for each test.
    StaticPool keeps the single in-memory connection alive across sessions.
    """
    import database_models  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Yields a clean AsyncSession for the test."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
async def client(session_factory, fake_gateway):
    """
    httpx client bound to the app, with the database, the AI gateway and
    the journal writer swapped for test doubles.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_journal_writer] = lambda: JournalWriter(session_factory)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """
    Factory creating a user (optionally with a subscription) and returning
    ``(user_id, bearer_headers)``.
    """
    counter = {"n": 0}

    async def _make_user(
        email: Optional[str] = None,
        password: str = "correct-horse-battery",
        plan_type: Optional[str] = None,
        status: str = "active",
        period_end=None,
        first_name: Optional[str] = None,
        birth_date: Optional[str] = None,
    ):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        async with session_factory() as session:
            user = await UserRepository(session).create_user({
                "email": email,
                "hashed_password": hash_password(password),
                "first_name": first_name,
                "birth_date": birth_date,
            })
            if plan_type is not None:
                if period_end is None:
                    period_end = utcnow() + timedelta(days=30)
                await SubscriptionRepository(session).upsert(user.id, plan_type, status, period_end)
            await session.commit()
            token = create_jwt(user.id, user.email, plan_type or "free")
        return user.id, {"Authorization": f"Bearer {token}"}

    return _make_user


@pytest.fixture
def premium_user(make_user):
    async def _premium_user(**kwargs):
        kwargs.setdefault("plan_type", "premium_monthly")
        return await make_user(**kwargs)

    return _premium_user
