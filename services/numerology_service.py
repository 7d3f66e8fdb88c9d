"""
Numerology Service - core numbers and the response cache
"""
import hashlib
import logging
import unicodedata
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import dialect_insert
from database_models import NumerologyCacheEntry
from utils.shared_utils import utcnow

logger = logging.getLogger(__name__)

MASTER_NUMBERS = (11, 22, 33)
VOWELS = "AEIOUY"


def reduce_to_single_digit(num: int, preserve_master: bool = True) -> int:
    while num > 9:
        if preserve_master and num in MASTER_NUMBERS:
            return num
        num = sum(int(digit) for digit in str(num))
    return num


def _letters(name: str) -> str:
    decomposed = unicodedata.normalize("NFD", name or "")
    return "".join(ch for ch in decomposed if ch.isascii() and ch.isalpha()).upper()


def letter_value(letter: str) -> int:
    # Pythagorean table: A=1 .. I=9, J=1 .. R=9, S=1 .. Z=8
    return (ord(letter) - ord("A")) % 9 + 1


def calculate_life_path(birth_date: str) -> int:
    try:
        year, month, day = (int(part) for part in birth_date[:10].split("-"))
    except (ValueError, AttributeError):
        return 0
    return reduce_to_single_digit(
        reduce_to_single_digit(day) + reduce_to_single_digit(month) + reduce_to_single_digit(year)
    )


def calculate_destiny(name: str) -> int:
    return reduce_to_single_digit(sum(letter_value(ch) for ch in _letters(name)))


def calculate_soul(name: str) -> int:
    return reduce_to_single_digit(sum(letter_value(ch) for ch in _letters(name) if ch in VOWELS))


def calculate_personality(name: str) -> int:
    return reduce_to_single_digit(sum(letter_value(ch) for ch in _letters(name) if ch not in VOWELS))


def core_numbers(name: str, birth_date: str) -> Dict[str, int]:
    return {
        "life_path": calculate_life_path(birth_date),
        "destiny": calculate_destiny(name),
        "soul": calculate_soul(name),
        "personality": calculate_personality(name),
    }


def numerology_cache_key(name: str, birth_date: str, birth_time: Optional[str], numbers: Dict[str, int]) -> str:
    raw = "_".join([
        name,
        birth_date,
        birth_time or "notime",
        str(numbers["life_path"]),
        str(numbers["destiny"]),
        str(numbers["soul"]),
        str(numbers["personality"]),
    ])
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


class NumerologyCache:
    """Repository for cache_numerology. Failures are logged and treated as a miss."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_cached(self, cache_key: str) -> Optional[NumerologyCacheEntry]:
        try:
            result = await self.db.execute(
                select(NumerologyCacheEntry).where(NumerologyCacheEntry.cache_key == cache_key)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Numerology cache read failed: {e}")
            await self.db.rollback()
            return None

    async def save(self, cache_key: str, inputs: Dict, response: str) -> None:
        insert = dialect_insert(self.db)
        stmt = insert(NumerologyCacheEntry).values(
            cache_key=cache_key,
            name=inputs.get("name"),
            birth_date=inputs.get("birth_date"),
            birth_time=inputs.get("birth_time"),
            life_path=inputs.get("life_path"),
            destiny=inputs.get("destiny"),
            soul=inputs.get("soul"),
            personality=inputs.get("personality"),
            response=response,
            generated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cache_key"],
            set_={"response": stmt.excluded.response, "generated_at": stmt.excluded.generated_at},
        )
        try:
            await self.db.execute(stmt)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.warning(f"Numerology cache save failed: {e}")
            await self.db.rollback()
