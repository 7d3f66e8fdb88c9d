"""
Admin Router - user overview and manual subscription overrides
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from config.settings import PLAN_FREE, PLAN_TYPES
from crud.subscription import SubscriptionRepository
from crud.user import UserRepository
from database import get_db
from models.account import SubscriptionOverrideRequest
from services.billing_service import add_months
from services.premium_service import is_admin
from utils.shared_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

OVERRIDE_YEARS = 10

# Create admin router
admin_router = APIRouter(prefix="/api/admin", tags=["admin"])


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(user):
        logger.warning(f"Non-admin {user.get('email')} tried to reach the admin API")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


@admin_router.get("/users")
async def list_users(admin: dict = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    users = await UserRepository(db).list_users_with_subscriptions()
    result = []
    for user in users:
        subscription = user.subscription
        period_end = as_utc(subscription.current_period_end) if subscription else None
        result.append({
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "created_at": user.created_at.isoformat() if user.created_at else None,
            "subscription": {
                "plan_type": subscription.plan_type,
                "status": subscription.status,
                "current_period_end": period_end.isoformat() if period_end else None,
            } if subscription else None,
        })
    return {"success": True, "users": result}


@admin_router.post("/user/{user_id}/subscription")
async def override_subscription(
    user_id: str,
    request: SubscriptionOverrideRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Set a user's plan by hand. Overrides run for ten years."""
    try:
        uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid user ID")
    if request.plan_type not in PLAN_TYPES:
        raise HTTPException(status_code=400, detail="Unknown plan type")

    user_repo = UserRepository(db)
    if not await user_repo.get_user_by_id(user_id):
        raise HTTPException(status_code=404, detail="User not found")

    period_end = add_months(utcnow(), 12 * OVERRIDE_YEARS)
    logger.info(f"[ADMIN] Subscription override: user={user_id}, plan={request.plan_type}, by admin={admin['email']}")
    await SubscriptionRepository(db).upsert(user_id, request.plan_type, "active", period_end)
    await user_repo.set_premium_flag(user_id, request.plan_type != PLAN_FREE)
    return {"success": True, "message": f"User plan updated to {request.plan_type}"}
