"""
SubscriptionRepository: one subscription row per user
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import PLAN_FREE
from database import dialect_insert
from database_models import Subscription
from utils.shared_utils import utcnow


class SubscriptionRepository:
    """
    Repository class for Subscription database operations.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(Subscription.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def ensure_default(self, user_id: str) -> Subscription:
        """
        Return the user's subscription, creating an inactive ``free`` row
        when none exists yet.
        """
        subscription = await self.get_by_user_id(user_id)
        if subscription is None:
            subscription = Subscription(user_id=user_id, plan_type=PLAN_FREE, status="inactive")
            self.db.add(subscription)
            await self.db.flush()
        return subscription

    async def upsert(
        self,
        user_id: str,
        plan_type: str,
        status: str,
        current_period_end: Optional[datetime],
    ) -> Subscription:
        """
        Insert or overwrite the user's subscription row.

        Args:
            user_id: Owner of the subscription
            plan_type: Normalized plan type (see config.settings.PLAN_TYPES)
            status: "active" or "inactive"
            current_period_end: When access lapses

        Returns:
            The stored Subscription
        """
        insert = dialect_insert(self.db)
        now = utcnow()
        stmt = insert(Subscription).values(
            user_id=user_id,
            plan_type=plan_type,
            status=status,
            current_period_end=current_period_end,
            credits=0,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.user_id],
            set_={
                "plan_type": stmt.excluded.plan_type,
                "status": stmt.excluded.status,
                "current_period_end": stmt.excluded.current_period_end,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
