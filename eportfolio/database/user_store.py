"""Credential store: persistence for users and their refresh-token columns."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from ..models import Profile, User, UserRole
from .engine import Database


class UserStore:
    """User queries. Each call runs in its own session."""

    def __init__(self, db: Database):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by normalized email."""
        stmt = select(User).options(selectinload(User.profile)).where(User.email == email)
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get user by ID."""
        stmt = select(User).options(selectinload(User.profile)).where(User.id == user_id)
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create_with_profile(
        self,
        email: str,
        name: str,
        password_hash: str,
        role: UserRole = UserRole.USER,
        email_verified: bool = True,
    ) -> User:
        """Insert a user and its empty profile in one transaction."""
        async with self.db.session() as session:
            user = User(
                email=email,
                name=name,
                password_hash=password_hash,
                role=role,
                email_verified=email_verified,
                profile=Profile(),
            )
            session.add(user)
            await session.flush()
        return user

    async def update_fields(self, user_id: uuid.UUID, **values) -> int:
        """Partial update; returns the number of rows touched."""
        stmt = update(User).where(User.id == user_id).values(**values)
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def set_refresh_token(
        self, user_id: uuid.UUID, refresh_token: str, expires_at: datetime
    ) -> int:
        return await self.update_fields(
            user_id, refresh_token=refresh_token, refresh_token_expires_at=expires_at
        )

    async def clear_refresh_token(self, user_id: uuid.UUID) -> int:
        return await self.update_fields(
            user_id, refresh_token=None, refresh_token_expires_at=None
        )

    async def rotate_refresh_token(
        self,
        user_id: uuid.UUID,
        expected_token: str,
        new_token: str,
        expires_at: datetime,
    ) -> bool:
        """Swap the refresh token only if the stored value is still ``expected_token``."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.refresh_token == expected_token)
            .values(refresh_token=new_token, refresh_token_expires_at=expires_at)
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount == 1
