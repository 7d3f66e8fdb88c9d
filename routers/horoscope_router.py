"""
Horoscope Router - cache-backed daily, weekly and monthly horoscopes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_optional_user
from config.prompts import build_horoscope_prompt
from database import get_db
from models.divination import HoroscopeRequest
from services.ai_gateway import AIGateway, EmptyCompletionError, get_ai_gateway
from services.astrology import utc_today
from services.feature_policy import (
    FEATURE_HOROSCOPE_DAILY,
    FEATURE_HOROSCOPE_MONTHLY,
    FEATURE_HOROSCOPE_WEEKLY,
    apply_gate,
)
from services.horoscope_cache import PERIOD_LABELS, HoroscopeCache, context_hash, split_affirmation
from services.premium_service import PremiumAccess, get_premium_access
from utils.rate_limit import ai_rate_limit
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

PERIOD_FEATURES = {
    "daily": FEATURE_HOROSCOPE_DAILY,
    "weekly": FEATURE_HOROSCOPE_WEEKLY,
    "monthly": FEATURE_HOROSCOPE_MONTHLY,
}

# Create horoscope router
horoscope_router = APIRouter(prefix="/api", tags=["horoscope"])


@horoscope_router.post("/horoscope", dependencies=[Depends(ai_rate_limit)])
async def horoscope(
    request: HoroscopeRequest,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    Horoscope for a sign and period.

    The gate runs before the cache so a cached weekly or monthly text is
    never handed to a non-premium caller.
    """
    apply_gate(PERIOD_FEATURES[request.period], access)

    today = utc_today()
    ctx_hash = context_hash(request.context)
    cache = HoroscopeCache(db)
    user_id = user["id"] if user else None

    entry = await cache.get_cached(request.sign, request.period, today, ctx_hash)
    if entry:
        log_endpoint_event("/api/horoscope", user_id, details={"period": request.period, "cached": True})
        return {
            "success": True,
            "response": entry.response,
            "affirmation": entry.affirmation,
            "luckyNumbers": entry.lucky_numbers,
            "period": entry.period_label,
            "cached": True,
        }

    period_label = PERIOD_LABELS[request.period]
    message = f"Sign: {request.sign}\nDate: {today.isoformat()}"
    raw = await gateway.generate(build_horoscope_prompt(request.period, request.context), message)

    parts = split_affirmation(raw)
    if not parts["prediction"]:
        # Never cache a day of empty horoscopes
        logger.warning(f"Horoscope for {request.sign}/{request.period} had no prediction text")
        raise EmptyCompletionError("Generated horoscope had no prediction text")

    await cache.save(
        request.sign,
        request.period,
        today,
        parts["prediction"],
        {
            "affirmation": parts["affirmation"],
            "lucky_numbers": parts["lucky_numbers"],
            "period_label": period_label,
        },
        ctx_hash,
    )

    log_endpoint_event("/api/horoscope", user_id, details={"period": request.period, "cached": False})
    return {
        "success": True,
        "response": parts["prediction"],
        "affirmation": parts["affirmation"],
        "luckyNumbers": parts["lucky_numbers"],
        "period": period_label,
        "cached": False,
    }
