"""
Divination Router - tarot, crystal ball, natal chart, synastry, numerology, astrocartography
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_optional_user
from config.prompts import SYSTEM_PROMPTS
from database import get_db
from models.divination import (
    AstrocartographyRequest,
    CrystalBallRequest,
    NatalChartRequest,
    NumerologyRequest,
    SynastryRequest,
    TarotRequest,
    TarotSummaryRequest,
)
from services.ai_gateway import AIGateway, get_ai_gateway
from services.astrology import calculate_moon_phase, calculate_synastry_scores
from services.feature_policy import (
    FEATURE_ASTROCARTOGRAPHY,
    FEATURE_CRYSTAL_BALL,
    FEATURE_NATAL_CHART,
    FEATURE_NUMEROLOGY,
    FEATURE_SYNASTRY,
    FEATURE_TAROT_SINGLE,
    FEATURE_TAROT_SPREAD,
    FEATURE_TAROT_SUMMARY,
    SYNASTRY_TEASER,
    UPGRADE_CTA,
    apply_gate,
)
from services.journal_service import JournalWriter, get_journal_writer
from services.numerology_service import NumerologyCache, core_numbers, numerology_cache_key
from services.premium_service import PremiumAccess, PremiumRequiredError, get_premium_access
from utils.rate_limit import ai_rate_limit
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

# Create divination router
divination_router = APIRouter(prefix="/api", tags=["divination"], dependencies=[Depends(ai_rate_limit)])


def _user_id(user: Optional[dict]) -> Optional[str]:
    return user["id"] if user else None


@divination_router.post("/crystal-ball")
async def crystal_ball(
    request: CrystalBallRequest,
    background_tasks: BackgroundTasks,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    journal: JournalWriter = Depends(get_journal_writer),
):
    """Oracle answer shaped by the current moon phase"""
    apply_gate(FEATURE_CRYSTAL_BALL, access)

    # One turn per earlier question so the gateway's per-turn cap never cuts the new one
    turns = [{"role": "user", "content": f"Earlier question in this session: {previous}"} for previous in request.history]
    turns.append({"role": "user", "content": request.question})

    system_prompt = SYSTEM_PROMPTS["crystal_ball"].replace("{MOON_PHASE}", calculate_moon_phase())
    response = await gateway.generate(system_prompt, turns)

    journal.schedule_reading(background_tasks, user, "crystal-ball", {"question": request.question, "response": response})
    log_endpoint_event("/api/crystal-ball", _user_id(user))
    return {"success": True, "response": response}


@divination_router.post("/tarot")
async def tarot(
    request: TarotRequest,
    background_tasks: BackgroundTasks,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    journal: JournalWriter = Depends(get_journal_writer),
):
    """
    Tarot reading. One card is free for everyone; spreads need premium.
    Non-premium spread requests get the first card as a teaser and the
    rest locked, without an AI call.
    """
    feature = FEATURE_TAROT_SINGLE if len(request.cards) == 1 else FEATURE_TAROT_SPREAD
    decision = apply_gate(feature, access)

    if decision.is_teaser:
        log_endpoint_event("/api/tarot", _user_id(user), "premium_required", {"cards": len(request.cards)})
        raise PremiumRequiredError(
            feature,
            current_plan=access.plan_type,
            reason=access.reason,
            status_code=403,
            message="Complex spreads are available to Star Guide (Premium) members.",
            extra={
                "isTeaser": True,
                "revealedCard": request.cards[0],
                "lockedCards": len(request.cards) - 1,
                "cta": UPGRADE_CTA,
            },
        )

    message = f'Spread: {request.spread_type}\nQuestion: "{request.question}"\nCards drawn: {", ".join(request.cards)}'
    response = await gateway.generate(SYSTEM_PROMPTS["tarot"], message)

    journal.schedule_reading(background_tasks, user, "tarot", {
        "question": request.question,
        "cards": request.cards,
        "spreadType": request.spread_type,
        "response": response,
    })
    log_endpoint_event("/api/tarot", _user_id(user), details={"cards": len(request.cards)})
    return {"success": True, "response": response}


@divination_router.post("/tarot-summary")
async def tarot_summary(
    request: TarotSummaryRequest,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    apply_gate(FEATURE_TAROT_SUMMARY, access)

    card_context = ", ".join(f"{card.position}: {card.name} ({card.meaning})" for card in request.cards)
    message = (
        f"Spread: {request.spread_type}\n\nCards in their positions:\n{card_context}\n\n"
        "Write a beautiful, deep summary of this reading."
    )
    response = await gateway.generate(SYSTEM_PROMPTS["tarot_summary"], message)
    log_endpoint_event("/api/tarot-summary", _user_id(user))
    return {"success": True, "response": response}


@divination_router.post("/natal-chart")
async def natal_chart(
    request: NatalChartRequest,
    background_tasks: BackgroundTasks,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    journal: JournalWriter = Depends(get_journal_writer),
):
    apply_gate(FEATURE_NATAL_CHART, access)

    message = (
        f"Name: {request.name or 'Seeker'}\nBirth date: {request.birth_date}\n"
        f"Birth time: {request.birth_time or 'unknown'}\nBirth place: {request.birth_place}"
    )
    response = await gateway.generate(SYSTEM_PROMPTS["natal_chart"], message)

    journal.schedule_reading(background_tasks, user, "natal-chart", {
        "name": request.name,
        "birthDate": request.birth_date,
        "birthPlace": request.birth_place,
        "response": response,
    })
    log_endpoint_event("/api/natal-chart", _user_id(user))
    return {"success": True, "response": response}


@divination_router.post("/synastry")
async def synastry(
    request: SynastryRequest,
    background_tasks: BackgroundTasks,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    journal: JournalWriter = Depends(get_journal_writer),
):
    """
    Compatibility of two people. The total score is always shown; the
    sub-scores and the narrative are premium.
    """
    decision = apply_gate(FEATURE_SYNASTRY, access)
    scores = calculate_synastry_scores(request.person1.name, request.person2.name)

    if decision.is_teaser:
        log_endpoint_event("/api/synastry", _user_id(user), "teaser")
        return {
            "success": True,
            "isTeaser": True,
            "response": SYNASTRY_TEASER,
            "scores": {"total": scores["total"]},
            "cta": UPGRADE_CTA,
        }

    message = (
        f"Person A: {request.person1.name}, born {request.person1.birth_date}\n"
        f"Person B: {request.person2.name}, born {request.person2.birth_date}\n"
        f"Compatibility scores: emotion {scores['emotion']}, communication {scores['communication']}, "
        f"passion {scores['passion']}, total {scores['total']}"
    )
    response = await gateway.generate(SYSTEM_PROMPTS["synastry"], message)

    journal.schedule_reading(background_tasks, user, "synastry", {
        "person1": request.person1.name,
        "person2": request.person2.name,
        "scores": scores,
        "response": response,
    })
    log_endpoint_event("/api/synastry", _user_id(user))
    return {"success": True, "isTeaser": False, "response": response, "scores": scores}


@divination_router.post("/numerology")
async def numerology(
    request: NumerologyRequest,
    background_tasks: BackgroundTasks,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    journal: JournalWriter = Depends(get_journal_writer),
    db: AsyncSession = Depends(get_db),
):
    """Numerology profile; identical inputs are served from the cache"""
    apply_gate(FEATURE_NUMEROLOGY, access)

    computed = core_numbers(request.name, request.birth_date)
    numbers = {
        "life_path": request.life_path if request.life_path is not None else computed["life_path"],
        "destiny": request.destiny if request.destiny is not None else computed["destiny"],
        "soul": request.soul if request.soul is not None else computed["soul"],
        "personality": request.personality if request.personality is not None else computed["personality"],
    }
    public_numbers = {
        "lifePath": numbers["life_path"],
        "destiny": numbers["destiny"],
        "soul": numbers["soul"],
        "personality": numbers["personality"],
    }

    cache = NumerologyCache(db)
    cache_key = numerology_cache_key(request.name, request.birth_date, request.birth_time, numbers)
    cached = await cache.get_cached(cache_key)
    if cached:
        log_endpoint_event("/api/numerology", _user_id(user), details={"cached": True})
        return {"success": True, "response": cached.response, "numbers": public_numbers, "cached": True}

    birth_time_line = f"\nBirth time: {request.birth_time}" if request.birth_time else ""
    message = (
        f"Name: {request.name}\nBirth date: {request.birth_date}{birth_time_line}\n\n"
        f"Calculated numbers:\n- Life path: {numbers['life_path']}\n- Destiny: {numbers['destiny']}\n"
        f"- Soul: {numbers['soul']}\n- Personality: {numbers['personality']}\n\n"
        "Create a comprehensive interpretation of this numerology profile."
    )
    response = await gateway.generate(SYSTEM_PROMPTS["numerology"], message)

    await cache.save(cache_key, {
        "name": request.name,
        "birth_date": request.birth_date,
        "birth_time": request.birth_time,
        **numbers,
    }, response)

    journal.schedule_reading(background_tasks, user, "numerology", {**public_numbers, "name": request.name, "response": response})
    log_endpoint_event("/api/numerology", _user_id(user), details={"cached": False})
    return {"success": True, "response": response, "numbers": public_numbers, "cached": False}


@divination_router.post("/astrocartography")
async def astrocartography(
    request: AstrocartographyRequest,
    background_tasks: BackgroundTasks,
    user: Optional[dict] = Depends(get_optional_user),
    access: PremiumAccess = Depends(get_premium_access),
    gateway: AIGateway = Depends(get_ai_gateway),
    journal: JournalWriter = Depends(get_journal_writer),
):
    """Relocation map. Premium only."""
    apply_gate(FEATURE_ASTROCARTOGRAPHY, access)

    message = (
        f"Name: {request.name or 'Seeker'}\nBirth date: {request.birth_date}\n"
        f"Birth time: {request.birth_time or 'unknown'}\nBirth place: {request.birth_place}\n"
        f"Intention: {request.intention}\n\n"
        "Create a personalized astrocartography map with recommended locations."
    )
    response = await gateway.generate(SYSTEM_PROMPTS["astrocartography"], message)

    journal.schedule_reading(background_tasks, user, "astrocartography", {
        "birthPlace": request.birth_place,
        "intention": request.intention,
        "response": response,
    })
    log_endpoint_event("/api/astrocartography", _user_id(user))
    return {"success": True, "response": response}
