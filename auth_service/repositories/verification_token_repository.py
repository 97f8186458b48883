"""
Verification token repository.

Tokens are random, bound to a user and time-limited. Consumption is a
conditional UPDATE so that of several concurrent verifications exactly one
observes a row count of 1.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import structlog

from ..core.security import generate_verification_token
from ..interfaces.repository_interface import IVerificationTokenRepository
from ..models.base import utcnow
from ..models.user import User
from ..models.verification_token import VerificationToken

logger = structlog.get_logger()


class VerificationTokenRepository(IVerificationTokenRepository):
    """Repository for verification token data access operations."""

    def __init__(
        self,
        expires_delta: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.expires_delta = expires_delta
        self._clock = clock

    async def issue(self, db: AsyncSession, user: User) -> str:
        """
        Generate and persist a verification token for ``user``.

        Args:
            db: Database session
            user: Flushed user owning the token

        Returns:
            The token string
        """
        now = self._clock()
        token = generate_verification_token()
        db.add(
            VerificationToken(
                token=token,
                user_id=user.id,
                created_at=now,
                expires_at=now + self.expires_delta,
            )
        )
        await db.flush()
        logger.debug("Verification token issued", user_id=user.id)
        return token

    async def resolve(self, db: AsyncSession, token: str) -> Optional[VerificationToken]:
        query = (
            select(VerificationToken)
            .where(VerificationToken.token == token)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.unique().scalar_one_or_none()

    async def consume(self, db: AsyncSession, token_id: int, consumed_at: datetime) -> bool:
        statement = (
            update(VerificationToken)
            .where(
                VerificationToken.id == token_id,
                VerificationToken.consumed_at.is_(None),
            )
            .values(consumed_at=consumed_at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(statement)
        return result.rowcount == 1

    async def supersede_live_tokens(self, db: AsyncSession, user_id: int, now: datetime) -> int:
        statement = (
            update(VerificationToken)
            .where(
                VerificationToken.user_id == user_id,
                VerificationToken.consumed_at.is_(None),
                VerificationToken.expires_at > now,
            )
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(statement)
        if result.rowcount:
            logger.info("Superseded live verification tokens", user_id=user_id, count=result.rowcount)
        return result.rowcount

    async def purge_expired(self, db: AsyncSession, older_than: datetime) -> int:
        statement = (
            delete(VerificationToken)
            .where(VerificationToken.expires_at < older_than)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(statement)
        logger.info("Purged expired verification tokens", count=result.rowcount)
        return result.rowcount
