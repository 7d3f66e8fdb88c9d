"""
UserRepository for database operations on User model
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from database_models import User

PROFILE_FIELDS = ("first_name", "birth_date", "birth_time", "birth_place")


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - email: str
                - hashed_password: str
                Optional profile fields:
                - first_name, birth_date, birth_time, birth_place

        Returns:
            Created User object
        """
        user = User(
            email=user_data["email"].strip().lower(),
            hashed_password=user_data["hashed_password"],
            **{field: user_data.get(field) for field in PROFILE_FIELDS},
        )
        self.db.add(user)
        await self.db.flush()  # Flush to get the ID without committing
        await self.db.refresh(user)
        return user

    async def update_user(self, user: User, updates: dict) -> User:
        """
        Update user fields.

        Args:
            user: User object to update
            updates: Dictionary of fields to update (e.g., {"is_premium": True})

        Returns:
            Updated User object
        """
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update_profile(self, user: User, profile: dict) -> User:
        """Apply only the editable profile fields that were actually sent."""
        updates = {key: value for key, value in profile.items() if key in PROFILE_FIELDS and value is not None}
        return await self.update_user(user, updates)

    async def set_premium_flag(self, user_id: str, is_premium: bool) -> None:
        user = await self.get_user_by_id(user_id)
        if user is not None:
            user.is_premium = is_premium
            await self.db.flush()

    async def list_users_with_subscriptions(self, limit: int = 500) -> List[User]:
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.subscription))
            .order_by(User.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
