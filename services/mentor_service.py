"""
Mentor Service - conversational guide with memory of the user's journal
"""
import logging
from datetime import datetime, time, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.prompts import SYSTEM_PROMPTS
from crud.mentor import MentorMessageRepository
from crud.reading import ReadingRepository
from crud.user import UserRepository
from database_models import Reading
from services.ai_gateway import AIGateway
from services.astrology import calculate_moon_phase, utc_today, zodiac_sign_for
from services.feature_policy import FEATURE_MENTOR, FEATURE_POLICIES, MENTOR_TEASER_REPLY
from services.premium_service import PremiumAccess

logger = logging.getLogger(__name__)

HISTORY_CONTEXT_MESSAGES = 10
READING_CONTEXT_ITEMS = 5


def summarize_reading(reading: Reading) -> str:
    data = reading.data or {}
    day = reading.created_at.date().isoformat() if reading.created_at else "?"

    if reading.type == "tarot":
        cards = []
        for card in data.get("cards") or []:
            if isinstance(card, dict):
                cards.append(f"{card.get('position', '')}: {card.get('name', '')}".strip(": "))
            else:
                cards.append(str(card))
        summary = f"Tarot reading ({data.get('spreadType', 'unknown spread')}): {', '.join(cards)}"
        if data.get("response"):
            summary += f'\n   -> Summary: "{str(data["response"])[:100]}..."'
    elif reading.type == "crystal-ball":
        summary = f'Crystal ball: question "{data.get("question", "")}" -> "{str(data.get("response", ""))[:50]}..."'
    elif reading.type == "numerology":
        summary = f"Numerology: life path {data.get('lifePath')}, destiny {data.get('destiny')}"
    elif reading.type == "horoscope":
        summary = f"Horoscope ({data.get('period')}): sign {data.get('sign')}"
    else:
        summary = reading.type
    return f"[{day}] {summary}"


def build_app_context(readings: List[Reading], moon_phase: str) -> str:
    if not readings:
        return f"CURRENT SKY:\n- Moon phase: {moon_phase}"
    items = "\n".join(summarize_reading(reading) for reading in readings)
    return (
        f"CURRENT SKY:\n- Moon phase: {moon_phase}\n\n"
        f"THE USER'S RECENT READINGS (refer to them):\n{items}\n\n"
        "(If the user asks for advice, check whether a recent reading already offers an answer. Connect the dots.)"
    )


def start_of_utc_day(now: Optional[datetime] = None) -> datetime:
    day = now.date() if now else utc_today()
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class MentorService:
    """Service class for the mentor chat"""

    def __init__(self, db: AsyncSession, gateway: AIGateway):
        self.db = db
        self.gateway = gateway
        self.messages = MentorMessageRepository(db)
        self.readings = ReadingRepository(db)
        self.users = UserRepository(db)

    async def remaining_free_messages(self, user_id: str) -> int:
        used = await self.messages.count_user_messages_since(user_id, start_of_utc_day())
        return max(0, FEATURE_POLICIES[FEATURE_MENTOR].daily_free_quota - used)

    async def build_user_context(self, user_id: str) -> dict:
        user = await self.users.get_user_by_id(user_id)
        if user is None:
            return {}
        return {
            "name": user.first_name,
            "birth_date": user.birth_date,
            "zodiac_sign": zodiac_sign_for(user.birth_date) if user.birth_date else None,
        }

    async def chat(self, user_id: str, message: str, access: PremiumAccess) -> dict:
        """
        Answer one user message.

        Non-premium users get the mentor policy's daily free quota; after
        that a fixed teaser is returned without calling the AI.

        Returns:
            {"reply": str, "is_teaser": bool, "remaining": Optional[int]}
        """
        remaining = None
        if not access.is_premium:
            remaining = await self.remaining_free_messages(user_id)
            if remaining <= 0:
                logger.info(f"Mentor free quota exhausted for user {user_id}")
                return {"reply": MENTOR_TEASER_REPLY, "is_teaser": True, "remaining": 0}

        recent = await self.messages.recent(user_id, limit=HISTORY_CONTEXT_MESSAGES)
        history = [{"role": m.role, "content": m.content} for m in reversed(recent)]
        readings = await self.readings.recent_for_user(user_id, limit=READING_CONTEXT_ITEMS)
        context_data = {
            "user_context": await self.build_user_context(user_id),
            "app_context": build_app_context(readings, calculate_moon_phase()),
        }

        # Stored with the request so the free quota sees it; rolled back if generation fails
        await self.messages.add(user_id, "user", message)

        reply = await self.gateway.generate(
            SYSTEM_PROMPTS["mentor"],
            history + [{"role": "user", "content": message}],
            context_data,
        )
        if remaining is not None:
            remaining -= 1
        return {"reply": reply, "is_teaser": False, "remaining": remaining}

    async def history(self, user_id: str) -> List[dict]:
        messages = await self.messages.history(user_id, limit=50)
        return [
            {
                "role": m.role,
                "content": m.content,
                "created_at": m.created_at.isoformat() if m.created_at else None,
            }
            for m in messages
        ]
