"""
Feature policy table and the single gate function every handler goes through
"""
import enum
import logging
from dataclasses import dataclass
from typing import Dict

from fastapi import HTTPException

from services.premium_service import PremiumAccess, PremiumRequiredError

logger = logging.getLogger(__name__)


class GateMode(str, enum.Enum):
    UNGATED = "ungated"
    HARD = "hard"
    SOFT = "soft"
    SOFT_QUOTA = "soft_quota"


@dataclass(frozen=True)
class FeaturePolicy:
    mode: GateMode
    daily_free_quota: int = 0


FEATURE_CRYSTAL_BALL = "crystal_ball"
FEATURE_HOROSCOPE_DAILY = "horoscope_daily"
FEATURE_HOROSCOPE_WEEKLY = "horoscope_weekly"
FEATURE_HOROSCOPE_MONTHLY = "horoscope_monthly"
FEATURE_TAROT_SINGLE = "tarot_single"
FEATURE_TAROT_SPREAD = "tarot_spread"
FEATURE_TAROT_SUMMARY = "tarot_summary"
FEATURE_NATAL_CHART = "natal_chart"
FEATURE_ASTROCARTOGRAPHY = "astrocartography"
FEATURE_SYNASTRY = "synastry"
FEATURE_NUMEROLOGY = "numerology"
FEATURE_MENTOR = "mentor"

MENTOR_DAILY_FREE_MESSAGES = 3

FEATURE_POLICIES: Dict[str, FeaturePolicy] = {
    FEATURE_CRYSTAL_BALL: FeaturePolicy(GateMode.UNGATED),
    FEATURE_HOROSCOPE_DAILY: FeaturePolicy(GateMode.UNGATED),
    FEATURE_HOROSCOPE_WEEKLY: FeaturePolicy(GateMode.HARD),
    FEATURE_HOROSCOPE_MONTHLY: FeaturePolicy(GateMode.HARD),
    FEATURE_TAROT_SINGLE: FeaturePolicy(GateMode.UNGATED),
    # The one free spread per day is tracked by the client
    FEATURE_TAROT_SPREAD: FeaturePolicy(GateMode.SOFT_QUOTA, daily_free_quota=1),
    FEATURE_TAROT_SUMMARY: FeaturePolicy(GateMode.UNGATED),
    FEATURE_NATAL_CHART: FeaturePolicy(GateMode.UNGATED),
    FEATURE_ASTROCARTOGRAPHY: FeaturePolicy(GateMode.HARD),
    FEATURE_SYNASTRY: FeaturePolicy(GateMode.SOFT),
    FEATURE_NUMEROLOGY: FeaturePolicy(GateMode.UNGATED),
    FEATURE_MENTOR: FeaturePolicy(GateMode.SOFT_QUOTA, daily_free_quota=MENTOR_DAILY_FREE_MESSAGES),
}

SYNASTRY_TEASER = (
    "Your charts share a remarkable connection. The full analysis reveals how your "
    "emotional worlds meet, where your communication flows with ease and where "
    "passion and tension pull you together. Unlock Premium to see the detailed "
    "emotion, communication and passion scores and the complete reading of your bond."
)

MENTOR_TEASER_REPLY = (
    "The stars have shared much with you today. You have used your free messages "
    "with the Mentor for today. Upgrade to Premium for unlimited guidance, or return "
    "tomorrow when the sky opens its gates again."
)

UPGRADE_CTA = {"label": "Unlock Premium", "url": "/pricing"}


@dataclass(frozen=True)
class GateDecision:
    feature: str
    mode: GateMode
    full_access: bool

    @property
    def is_teaser(self) -> bool:
        return not self.full_access


def apply_gate(feature: str, access: PremiumAccess) -> GateDecision:
    """
    Classify a request against the policy table.

    Hard features reject: anonymous callers with 401, everyone else without
    premium with PremiumRequiredError. Soft features never reject here; the
    handler reads ``full_access`` and decides how much to reveal.
    """
    policy = FEATURE_POLICIES[feature]

    if policy.mode == GateMode.UNGATED:
        return GateDecision(feature, policy.mode, True)

    if policy.mode == GateMode.HARD and not access.is_premium:
        if not access.is_authenticated:
            raise HTTPException(status_code=401, detail="Authentication required")
        logger.info(f"Hard gate blocked {feature}: plan={access.plan_type} reason={access.reason}")
        raise PremiumRequiredError(feature, current_plan=access.plan_type, reason=access.reason)

    return GateDecision(feature, policy.mode, access.is_premium)
