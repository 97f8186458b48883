"""
Periodic removal of expired verification tokens.
"""
import asyncio
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from .auth.email_verification_service import EmailVerificationService

logger = structlog.get_logger()


class ExpiredTokenJanitor:
    """Background task that purges expired tokens every ``interval_seconds``; 0 disables it."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        email_verification_service: EmailVerificationService,
        interval_seconds: float = 3600.0,
    ):
        self.session_factory = session_factory
        self.email_verification_service = email_verification_service
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running or self.interval_seconds <= 0:
            return
        self._task = asyncio.create_task(self._purge_loop(), name="verification-token-janitor")
        logger.info("Token janitor started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Token janitor stopped")

    async def purge_once(self) -> int:
        """Run one purge in its own session; returns how many tokens were deleted."""
        async with self.session_factory() as db:
            return await self.email_verification_service.purge_expired_tokens(db)

    async def _purge_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.purge_once()
            except asyncio.CancelledError:
                break
            except SQLAlchemyError as e:
                logger.error("Error in token janitor loop", error=str(e))
