"""
Verification token lifecycle: issue, deliver, consume.
"""
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...core.config import Settings
from ...core.exceptions import NotFoundError, TokenAlreadyUsedError
from ...interfaces.notification_interface import INotificationDispatcher
from ...interfaces.repository_interface import IUserRepository, IVerificationTokenRepository
from ...models.base import utcnow
from ...models.user import User
from ..mail_service import build_verification_email, mask_email

logger = structlog.get_logger()


class EmailVerificationService:
    """Service responsible for email verification operations."""

    def __init__(
        self,
        settings: Settings,
        user_repository: IUserRepository,
        token_repository: IVerificationTokenRepository,
        notification_dispatcher: INotificationDispatcher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.user_repository = user_repository
        self.token_repository = token_repository
        self.notification_dispatcher = notification_dispatcher
        self._clock = clock

    async def create_verification(self, db: AsyncSession, user: User) -> str:
        """
        Issue a fresh token for ``user``, closing any token still live.

        The caller owns the transaction and must commit.
        """
        await self.token_repository.supersede_live_tokens(db, user.id, self._clock())
        return await self.token_repository.issue(db, user)

    async def send_verification_email(self, user: User, token: str) -> None:
        """
        Hand the verification email to the dispatcher.

        Raises:
            DeliveryError: If the dispatcher could not accept the message
        """
        email = build_verification_email(self.settings, user.email, token)
        await self.notification_dispatcher.dispatch(email)
        logger.info("Verification email dispatched", user_id=user.id, recipient=mask_email(user.email))

    async def verify(self, db: AsyncSession, token: str) -> User:
        """
        Consume ``token`` and enable its owner.

        The caller owns the transaction: it must commit on success and roll
        back on error.

        Args:
            db: Database session
            token: Verification token from the emailed link

        Returns:
            The enabled user

        Raises:
            NotFoundError: Unknown or expired token, or owner missing
            TokenAlreadyUsedError: Token already used or superseded
        """
        row = await self.token_repository.resolve(db, token)
        if row is None:
            logger.info("Verification with unknown token")
            raise NotFoundError("invalid token")

        now = self._clock()
        if row.is_consumed:
            logger.info("Verification with consumed token", user_id=row.user_id)
            raise TokenAlreadyUsedError("Verification token has already been used")

        if row.is_expired(now):
            logger.info("Verification with expired token", user_id=row.user_id)
            raise NotFoundError("invalid token")

        user = await self.user_repository.get_by_id(db, row.user_id)
        if user is None:
            logger.error("Verification token owner missing", user_id=row.user_id)
            raise NotFoundError("user not found")

        if not await self.token_repository.consume(db, row.id, now):
            logger.info("Verification token consumed concurrently", user_id=user.id)
            raise TokenAlreadyUsedError("Verification token has already been used")

        await self.user_repository.mark_enabled(db, user, now)
        logger.info("Account verified", user_id=user.id)
        return user

    async def purge_expired_tokens(self, db: AsyncSession) -> int:
        """Delete expired tokens and commit; returns how many were removed."""
        count = await self.token_repository.purge_expired(db, self._clock())
        await db.commit()
        return count
