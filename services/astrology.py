"""
Astrology helpers: moon phase, zodiac lookup and synastry scores
"""
from datetime import date, datetime, timezone
from typing import Dict, Optional

SYNODIC_MONTH = 29.53058867
KNOWN_NEW_MOON = datetime(2024, 1, 11, 11, 57, tzinfo=timezone.utc)

# (upper bound in days since the new moon, phase name)
MOON_PHASES = (
    (1.5, "New Moon (rebirth, new beginnings)"),
    (7, "Waxing Crescent (building, gathering strength)"),
    (9, "First Quarter (overcoming obstacles)"),
    (14, "Waxing Gibbous (refinement)"),
    (16, "Full Moon (culmination, truth revealed)"),
    (21, "Waning Gibbous (release, gratitude)"),
    (23, "Last Quarter (forgiveness)"),
)
WANING_CRESCENT = "Waning Crescent (cleansing, rest)"

# Sign and the last (month, day) it covers, in calendar order from January
ZODIAC_SIGNS = (
    ("Capricorn", (1, 19)),
    ("Aquarius", (2, 18)),
    ("Pisces", (3, 20)),
    ("Aries", (4, 19)),
    ("Taurus", (5, 20)),
    ("Gemini", (6, 20)),
    ("Cancer", (7, 22)),
    ("Leo", (8, 22)),
    ("Virgo", (9, 22)),
    ("Libra", (10, 22)),
    ("Scorpio", (11, 21)),
    ("Sagittarius", (12, 21)),
    ("Capricorn", (12, 31)),
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def calculate_moon_phase(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    days = (now - KNOWN_NEW_MOON).total_seconds() / 86400
    age = days % SYNODIC_MONTH

    if age > 28:
        return MOON_PHASES[0][1]
    for upper, name in MOON_PHASES:
        if age < upper:
            return name
    return WANING_CRESCENT


def zodiac_sign_for(birth_date) -> Optional[str]:
    """
    Sun sign for a date or an ISO ``YYYY-MM-DD`` string. Returns None for
    values that cannot be parsed.
    """
    if isinstance(birth_date, str):
        try:
            birth_date = date.fromisoformat(birth_date[:10])
        except ValueError:
            return None
    if not isinstance(birth_date, date):
        return None
    key = (birth_date.month, birth_date.day)
    for sign, last_day in ZODIAC_SIGNS:
        if key <= last_day:
            return sign
    return None


def calculate_synastry_scores(name_a: str, name_b: str) -> Dict[str, int]:
    """
    Deterministic compatibility scores for a pair of names. Every score
    lies in 60..98.
    """
    seed = len(name_a or "") + len(name_b or "")
    emotion = 60 + (seed * 3) % 39
    communication = 60 + (seed * 7) % 39
    passion = 60 + (seed * 5) % 39
    total = (emotion + communication + passion) // 3
    return {
        "emotion": emotion,
        "communication": communication,
        "passion": passion,
        "total": total,
    }
