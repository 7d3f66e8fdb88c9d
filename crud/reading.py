"""
ReadingRepository for the user's reading journal
"""

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Reading


class ReadingRepository:
    """
    Journal entries are scoped to their owner: every lookup filters on
    ``user_id`` so one user can never see or change another user's reading.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: str, reading_type: str, data: dict) -> Reading:
        reading = Reading(user_id=user_id, type=reading_type, data=data)
        self.db.add(reading)
        await self.db.flush()
        await self.db.refresh(reading)
        return reading

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        reading_type: Optional[str] = None,
    ) -> List[Reading]:
        stmt = select(Reading).where(Reading.user_id == user_id)
        if reading_type:
            stmt = stmt.where(Reading.type == reading_type)
        stmt = stmt.order_by(Reading.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def recent_for_user(self, user_id: str, limit: int = 5) -> List[Reading]:
        return await self.list_for_user(user_id, limit=limit)

    async def get_for_user(self, user_id: str, reading_id: str) -> Optional[Reading]:
        result = await self.db.execute(
            select(Reading).where(Reading.id == reading_id, Reading.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def toggle_favorite(self, user_id: str, reading_id: str) -> Optional[Reading]:
        reading = await self.get_for_user(user_id, reading_id)
        if reading is None:
            return None
        reading.is_favorite = not reading.is_favorite
        await self.db.flush()
        return reading

    async def delete_for_user(self, user_id: str, reading_id: str) -> bool:
        result = await self.db.execute(
            delete(Reading).where(Reading.id == reading_id, Reading.user_id == user_id)
        )
        return result.rowcount > 0


def reading_to_dict(reading: Reading) -> dict:
    return {
        "id": reading.id,
        "type": reading.type,
        "data": reading.data,
        "is_favorite": reading.is_favorite,
        "created_at": reading.created_at.isoformat() if reading.created_at else None,
    }
