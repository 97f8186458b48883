"""
Auth service orchestrating signup, account verification and login.

Account state is committed before any notification is attempted, so losing
an outbound email never rolls back or corrupts a registration.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import AccountExistsError, AuthServiceError, ValidationError
from ..core.security import PasswordHasher, TokenSigner, password_too_long
from ..interfaces.repository_interface import IUserRepository
from ..models.user import User
from .auth.authentication_service import AuthenticationService
from .auth.email_verification_service import EmailVerificationService

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthenticationResult:
    authentication_token: str
    username: str
    expires_at: datetime


class AuthService:
    """Application service for the account lifecycle."""

    def __init__(
        self,
        user_repository: IUserRepository,
        password_hasher: PasswordHasher,
        token_signer: TokenSigner,
        authentication_service: AuthenticationService,
        email_verification_service: EmailVerificationService,
    ):
        self.user_repository = user_repository
        self.password_hasher = password_hasher
        self.token_signer = token_signer
        self.authentication_service = authentication_service
        self.email_verification_service = email_verification_service

    async def signup(self, db: AsyncSession, username: str, email: str, password: str) -> User:
        """
        Register a disabled account and send its verification link.

        Args:
            db: Database session
            username: Desired unique username
            email: Unique email address the link is sent to
            password: Plaintext password, hashed before storage

        Returns:
            The persisted, still disabled user

        Raises:
            ValidationError: Blank username, email or password, or a password over 72 bytes
            AccountExistsError: Username or email already registered; nothing written
            DeliveryError: Account committed but the email could not be handed off
        """
        username = (username or "").strip()
        email = (email or "").strip()
        if not username:
            raise ValidationError("username is required")
        if not email:
            raise ValidationError("email is required")
        if not password:
            raise ValidationError("password is required")
        if password_too_long(password):
            raise ValidationError("password is longer than bcrypt can hash")

        if await self.user_repository.exists_by_username(db, username):
            raise AccountExistsError("Username is already taken")
        if await self.user_repository.exists_by_email(db, email):
            raise AccountExistsError("Email is already registered")

        password_hash = await asyncio.to_thread(self.password_hasher.hash, password)
        user = User(username=username, email=email, password_hash=password_hash, enabled=False)

        try:
            await self.user_repository.add(db, user)
            token = await self.email_verification_service.create_verification(db, user)
            await db.commit()
        except AccountExistsError:
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Signup transaction failed", error=str(e))
            raise

        logger.info("User registered", user_id=user.id)

        await self.email_verification_service.send_verification_email(user, token)
        return user

    async def verify_account(self, db: AsyncSession, token: str) -> User:
        """
        Enable the account owning ``token``.

        Lookup, consumption and the enable write commit together; any
        failure rolls all of them back.

        Raises:
            NotFoundError: Unknown or expired token, or the owner is missing
            TokenAlreadyUsedError: Token already used
        """
        try:
            user = await self.email_verification_service.verify(db, token)
            await db.commit()
        except (AuthServiceError, SQLAlchemyError):
            await db.rollback()
            raise
        return user

    async def login(self, db: AsyncSession, username: str, password: str) -> AuthenticationResult:
        """
        Check credentials and issue a session token.

        Raises:
            AuthenticationError: For any credential failure
        """
        user = await self.authentication_service.authenticate(db, username, password)
        issued = self.token_signer.issue(user.username)
        return AuthenticationResult(
            authentication_token=issued.token,
            username=user.username,
            expires_at=issued.expires_at,
        )

    async def resend_verification(self, db: AsyncSession, email: str) -> None:
        """
        Issue a new verification link for a pending account.

        Unknown and already verified addresses are ignored silently so the
        endpoint cannot be used to discover registered emails.

        Raises:
            DeliveryError: New token committed but the email could not be handed off
        """
        user = await self.user_repository.get_by_email(db, email or "")
        if user is None or user.enabled:
            logger.info("Verification resend ignored")
            return

        try:
            token = await self.email_verification_service.create_verification(db, user)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Verification resend failed", user_id=user.id, error=str(e))
            raise

        await self.email_verification_service.send_verification_email(user, token)
