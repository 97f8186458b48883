"""
Credential checking.

Every failure path raises the same AuthenticationError so a caller cannot
tell an unknown username from a wrong password or an unverified account.
The reason is logged for operators only.
"""
import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ...core.exceptions import AuthenticationError
from ...core.security import PasswordHasher
from ...interfaces.repository_interface import IUserRepository
from ...models.user import User

logger = structlog.get_logger()


class AuthenticationService:
    """Service responsible for checking username/password credentials."""

    def __init__(self, user_repository: IUserRepository, password_hasher: PasswordHasher):
        self.user_repository = user_repository
        self.password_hasher = password_hasher

    async def authenticate(self, db: AsyncSession, username: str, password: str) -> User:
        """
        Check credentials and return the matching enabled user.

        Args:
            db: Database session
            username: Claimed username
            password: Plaintext password

        Returns:
            The authenticated user

        Raises:
            AuthenticationError: Unknown user, wrong password or disabled account
        """
        user = await self.user_repository.get_by_username(db, username)

        if user is None:
            await asyncio.to_thread(self.password_hasher.verify_dummy, password)
            self._log_failed_login("user_not_found")
            raise AuthenticationError("Invalid credentials")

        password_ok = await asyncio.to_thread(self.password_hasher.verify, password, user.password_hash)
        if not password_ok:
            self._log_failed_login("invalid_password", user.id)
            raise AuthenticationError("Invalid credentials")

        if not user.enabled:
            self._log_failed_login("account_disabled", user.id)
            raise AuthenticationError("Invalid credentials")

        logger.info("User authenticated successfully", user_id=user.id)
        return user

    @staticmethod
    def _log_failed_login(reason: str, user_id: Optional[int] = None) -> None:
        logger.warning("Login failed", reason=reason, user_id=user_id)
