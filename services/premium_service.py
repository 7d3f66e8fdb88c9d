"""
Premium Service - subscription lookup and the premium predicate
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_optional_user
from config.settings import PREMIUM_PLAN_TYPES, settings
from crud.subscription import SubscriptionRepository
from database import get_db
from database_models import Subscription
from utils.shared_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

REASON_ANONYMOUS = "not_authenticated"
REASON_NO_SUBSCRIPTION = "no_subscription"
REASON_INACTIVE = "inactive"
REASON_EXPIRED = "expired"
REASON_PLAN_NOT_PREMIUM = "plan_not_premium"
REASON_LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class PremiumAccess:
    is_authenticated: bool
    is_premium: bool
    plan_type: Optional[str] = None
    reason: Optional[str] = None
    user_id: Optional[str] = None


ANONYMOUS_ACCESS = PremiumAccess(is_authenticated=False, is_premium=False, reason=REASON_ANONYMOUS)


class PremiumRequiredError(Exception):
    """Raised when a premium-only feature is requested without premium access."""

    def __init__(
        self,
        feature: str,
        current_plan: Optional[str] = None,
        reason: Optional[str] = None,
        status_code: int = 402,
        message: str = "This feature requires a premium subscription",
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.feature = feature
        self.current_plan = current_plan
        self.reason = reason
        self.status_code = status_code
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "success": False,
            "error": self.message,
            "code": "PREMIUM_REQUIRED",
            "feature": self.feature,
            "reason": self.reason,
        }
        if self.current_plan is not None:
            body["currentPlan"] = self.current_plan
        body.update(self.extra)
        return body


def evaluate_subscription(subscription: Optional[Subscription], now: Optional[datetime] = None) -> tuple:
    """
    Premium iff status is active, the period has not ended and the plan
    is a paid one.

    Returns:
        (is_premium, reason) where reason is None when premium
    """
    if subscription is None:
        return False, REASON_NO_SUBSCRIPTION
    now = now or utcnow()
    if subscription.status != "active":
        return False, REASON_INACTIVE
    period_end = as_utc(subscription.current_period_end)
    if period_end is None or period_end <= now:
        return False, REASON_EXPIRED
    if subscription.plan_type not in PREMIUM_PLAN_TYPES:
        return False, REASON_PLAN_NOT_PREMIUM
    return True, None


def is_admin(user: Optional[dict]) -> bool:
    if not user or not user.get("email"):
        return False
    return user["email"].lower() in settings.admin_email_list


class PremiumService:
    """Service class for premium access checks. Reads only."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.subscriptions = SubscriptionRepository(db)

    async def check(self, user: Optional[dict]) -> PremiumAccess:
        if not user:
            return ANONYMOUS_ACCESS
        subscription = await self.subscriptions.get_by_user_id(user["id"])
        plan_type = subscription.plan_type if subscription else None
        if is_admin(user):
            return PremiumAccess(True, True, plan_type=plan_type, user_id=user["id"])
        is_premium, reason = evaluate_subscription(subscription)
        return PremiumAccess(True, is_premium, plan_type=plan_type, reason=reason, user_id=user["id"])


async def get_premium_access(
    user: Optional[dict] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> PremiumAccess:
    """
    Soft gate dependency: never rejects. A failed lookup degrades to
    limited access instead of failing the request.
    """
    if not user:
        return ANONYMOUS_ACCESS
    try:
        return await PremiumService(db).check(user)
    except SQLAlchemyError as e:
        logger.error(f"Subscription lookup failed for user {user['id']}: {e}")
        return PremiumAccess(True, False, reason=REASON_LOOKUP_FAILED, user_id=user["id"])
