"""
Repository interfaces for dependency abstraction.
Defines contracts for the credential store and the verification token store
so services can be tested against in-memory doubles.
"""
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from ..models.verification_token import VerificationToken


@runtime_checkable
class IUserRepository(Protocol):
    """Protocol for credential store operations."""

    async def add(self, db: AsyncSession, user: User) -> User:
        """
        Persist a new user.

        Args:
            db: Database session
            user: Unsaved user instance

        Returns:
            The flushed user, with its primary key assigned

        Raises:
            AccountExistsError: If the username or email is already taken
        """
        ...

    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        """Get user by primary key."""
        ...

    async def get_by_username(self, db: AsyncSession, username: str) -> Optional[User]:
        """Get user by username (exact match)."""
        ...

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        ...

    async def exists_by_username(self, db: AsyncSession, username: str) -> bool:
        ...

    async def exists_by_email(self, db: AsyncSession, email: str) -> bool:
        ...

    async def mark_enabled(self, db: AsyncSession, user: User, verified_at: datetime) -> User:
        """
        Enable a user account.

        Args:
            db: Database session
            user: User to enable
            verified_at: Verification timestamp, kept from the first enable

        Returns:
            The enabled user
        """
        ...


@runtime_checkable
class IVerificationTokenRepository(Protocol):
    """Protocol for verification token store operations."""

    async def issue(self, db: AsyncSession, user: User) -> str:
        """
        Generate, persist and return a fresh token bound to ``user``.

        Args:
            db: Database session
            user: Flushed user owning the token

        Returns:
            The opaque token string
        """
        ...

    async def resolve(self, db: AsyncSession, token: str) -> Optional[VerificationToken]:
        """Look up a token row, or None if unknown."""
        ...

    async def consume(self, db: AsyncSession, token_id: int, consumed_at: datetime) -> bool:
        """
        Atomically mark a token consumed.

        Returns:
            True only for the single caller that flipped it from unconsumed
        """
        ...

    async def supersede_live_tokens(self, db: AsyncSession, user_id: int, now: datetime) -> int:
        """Consume every live token of ``user_id``; returns how many were closed."""
        ...

    async def purge_expired(self, db: AsyncSession, older_than: datetime) -> int:
        """Delete tokens that expired before ``older_than``; returns the count."""
        ...
