"""
NewsletterRepository for newsletter sign-ups
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import NewsletterSubscriber


class NewsletterRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[NewsletterSubscriber]:
        result = await self.db.execute(
            select(NewsletterSubscriber).where(NewsletterSubscriber.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def subscribe(self, email: str, source: str = "web_footer") -> NewsletterSubscriber:
        subscriber = NewsletterSubscriber(email=email.strip().lower(), source=source)
        self.db.add(subscriber)
        await self.db.flush()
        return subscriber
