"""
MentorMessageRepository: append-only chat log for the mentor
"""

from datetime import datetime
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import MentorMessage


class MentorMessageRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def recent(self, user_id: str, limit: int = 10) -> List[MentorMessage]:
        """Newest messages first."""
        result = await self.db.execute(
            select(MentorMessage)
            .where(MentorMessage.user_id == user_id)
            .order_by(MentorMessage.created_at.desc(), MentorMessage.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def history(self, user_id: str, limit: int = 50) -> List[MentorMessage]:
        """The last ``limit`` messages, oldest first."""
        messages = await self.recent(user_id, limit=limit)
        messages.reverse()
        return messages

    async def add(self, user_id: str, role: str, content: str) -> MentorMessage:
        message = MentorMessage(user_id=user_id, role=role, content=content)
        self.db.add(message)
        await self.db.flush()
        return message

    async def count_user_messages_since(self, user_id: str, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(MentorMessage.id)).where(
                MentorMessage.user_id == user_id,
                MentorMessage.role == "user",
                MentorMessage.created_at >= since,
            )
        )
        return int(result.scalar_one())
