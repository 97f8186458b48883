"""
User repository implementation following the Repository pattern.
The credential store: uniqueness of username and email is enforced by the
database constraints, so concurrent signups cannot both succeed.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import structlog

from ..core.exceptions import AccountExistsError
from ..interfaces.repository_interface import IUserRepository
from ..models.user import User

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository(IUserRepository):
    """Repository for user data access operations."""

    async def add(self, db: AsyncSession, user: User) -> User:
        """
        Persist a new, not yet committed user.

        Args:
            db: Database session
            user: User instance to insert

        Returns:
            Flushed user instance

        Raises:
            AccountExistsError: If the username or email is already taken
        """
        user.email = normalize_email(user.email)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            logger.info("User insert rejected by unique constraint", username=user.username)
            raise AccountExistsError("Username or email is already registered") from e

        logger.info("User created", user_id=user.id)
        return user

    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        query = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_username(self, db: AsyncSession, username: str) -> Optional[User]:
        """
        Get user by username.

        Args:
            db: Database session
            username: Exact username

        Returns:
            User instance or None if not found
        """
        query = select(User).where(User.username == username).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        query = (
            select(User)
            .where(User.email == normalize_email(email))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def exists_by_username(self, db: AsyncSession, username: str) -> bool:
        result = await db.execute(select(func.count(User.id)).where(User.username == username))
        return result.scalar() > 0

    async def exists_by_email(self, db: AsyncSession, email: str) -> bool:
        result = await db.execute(
            select(func.count(User.id)).where(User.email == normalize_email(email))
        )
        return result.scalar() > 0

    async def mark_enabled(self, db: AsyncSession, user: User, verified_at: datetime) -> User:
        """
        Enable a user account. Enabling an enabled account changes nothing.

        Args:
            db: Database session
            user: User to enable
            verified_at: Timestamp recorded on the first enable only

        Returns:
            The enabled user
        """
        user.enabled = True
        if user.verified_at is None:
            user.verified_at = verified_at
        await db.flush()
        return user
