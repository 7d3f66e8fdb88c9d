"""
Horoscope Cache - generated horoscopes keyed by (sign, period, calendar day)
"""
import hashlib
import json
import logging
import random
import re
import unicodedata
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import dialect_insert
from database_models import HoroscopeCacheEntry
from utils.shared_utils import utcnow

logger = logging.getLogger(__name__)

HOROSCOPE_PERIODS = ("daily", "weekly", "monthly")

PERIOD_LABELS = {
    "daily": "Daily Inspiration",
    "weekly": "Weekly Horoscope",
    "monthly": "Monthly Horoscope",
}

NO_CONTEXT = "nocontext"
DEFAULT_AFFIRMATION = "I am in harmony with the universe."

AFFIRMATION_PATTERNS = (
    # *Affirmation: text* or **Affirmation:** text
    re.compile(r"\*\*?Affirmation:?\*?\*?\s*[^*]*\*?", re.IGNORECASE),
    # Affirmation: text at the end of a line
    re.compile(r"Affirmation:\s*.+$", re.IGNORECASE | re.MULTILINE),
)
CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def normalize_sign(sign: str) -> str:
    """Lowercase and strip diacritics so 'Štír' and 'stir' share a key."""
    decomposed = unicodedata.normalize("NFD", sign.strip())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def context_hash(context: Optional[List[str]]) -> str:
    if not context:
        return NO_CONTEXT
    return hashlib.sha256("".join(context).encode("utf-8")).hexdigest()[:16]


def generate_lucky_numbers() -> List[int]:
    return random.sample(range(1, 91), 4)


def split_affirmation(raw: str) -> Dict[str, Any]:
    """
    Split a generated horoscope into prediction, affirmation and lucky
    numbers. Accepts the JSON payload the prompt asks for, or free text.
    Any "Affirmation:" fragment left inside the prediction is cut out.
    """
    text = CODE_FENCE.sub("", raw.strip())
    payload: Dict[str, Any] = {}
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            payload = parsed
    except ValueError:
        pass

    prediction = str(payload.get("prediction") or (text if not payload else "")).strip()
    affirmation = payload.get("affirmation") or None
    lucky_numbers = payload.get("luckyNumbers")

    extracted = None
    for pattern in AFFIRMATION_PATTERNS:
        match = pattern.search(prediction)
        if match and extracted is None:
            extracted = re.sub(r"^Affirmation:?\s*", "", match.group(0).replace("*", ""), flags=re.IGNORECASE).strip()
        prediction = pattern.sub("", prediction).strip()

    if not isinstance(lucky_numbers, list) or not all(isinstance(n, int) for n in lucky_numbers):
        lucky_numbers = generate_lucky_numbers()

    return {
        "prediction": prediction,
        "affirmation": affirmation or extracted or DEFAULT_AFFIRMATION,
        "lucky_numbers": lucky_numbers,
    }


class HoroscopeCache:
    """
    Repository for cache_horoscopes. Reads and writes never raise: a broken
    cache just means the horoscope gets generated again.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_cached(
        self,
        sign: str,
        period: str,
        day: date,
        ctx_hash: str = NO_CONTEXT,
    ) -> Optional[HoroscopeCacheEntry]:
        try:
            result = await self.db.execute(
                select(HoroscopeCacheEntry).where(
                    HoroscopeCacheEntry.sign == normalize_sign(sign),
                    HoroscopeCacheEntry.period == period,
                    HoroscopeCacheEntry.cache_date == day.isoformat(),
                    HoroscopeCacheEntry.context_hash == ctx_hash,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Horoscope cache read failed: {e}")
            await self.db.rollback()
            return None

    async def save(
        self,
        sign: str,
        period: str,
        day: date,
        text: str,
        side_data: Optional[Dict[str, Any]] = None,
        ctx_hash: str = NO_CONTEXT,
    ) -> None:
        """
        Upsert one entry. Two concurrent misses may both land here; the
        later write wins.
        """
        side_data = side_data or {}
        insert = dialect_insert(self.db)
        values = {
            "sign": normalize_sign(sign),
            "period": period,
            "cache_date": day.isoformat(),
            "context_hash": ctx_hash,
            "response": text,
            "affirmation": side_data.get("affirmation"),
            "lucky_numbers": side_data.get("lucky_numbers"),
            "period_label": side_data.get("period_label", PERIOD_LABELS.get(period)),
            "generated_at": utcnow(),
        }
        stmt = insert(HoroscopeCacheEntry).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["sign", "period", "cache_date", "context_hash"],
            set_={
                "response": stmt.excluded.response,
                "affirmation": stmt.excluded.affirmation,
                "lucky_numbers": stmt.excluded.lucky_numbers,
                "period_label": stmt.excluded.period_label,
                "generated_at": stmt.excluded.generated_at,
            },
        )
        try:
            await self.db.execute(stmt)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.warning(f"Horoscope cache save failed: {e}")
            await self.db.rollback()
