"""
Service container.

Every collaborator is built once at process start by ``build_container`` and
handed to the app factory. Nothing is looked up from a global registry;
request handlers reach the container through ``app.state``.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
import structlog

from ..core.config import Settings
from ..core.database import create_engine, create_session_factory
from ..core.security import PasswordHasher, TokenSigner
from ..interfaces.notification_interface import IMailSender, INotificationDispatcher
from ..interfaces.repository_interface import IUserRepository, IVerificationTokenRepository
from ..repositories.user_repository import UserRepository
from ..repositories.verification_token_repository import VerificationTokenRepository
from ..services.auth.authentication_service import AuthenticationService
from ..services.auth.email_verification_service import EmailVerificationService
from ..services.auth_service import AuthService
from ..services.mail_service import create_mail_sender
from ..services.notification_dispatcher import create_notification_dispatcher
from ..services.token_janitor import ExpiredTokenJanitor

logger = structlog.get_logger()


@dataclass
class Container:
    """Explicit dependency struct assembled once per process."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker
    password_hasher: PasswordHasher
    token_signer: TokenSigner
    user_repository: IUserRepository
    verification_token_repository: IVerificationTokenRepository
    mail_sender: IMailSender
    notification_dispatcher: INotificationDispatcher
    authentication_service: AuthenticationService
    email_verification_service: EmailVerificationService
    auth_service: AuthService
    token_janitor: ExpiredTokenJanitor

    async def startup(self) -> None:
        await self.notification_dispatcher.start()
        await self.token_janitor.start()

    async def shutdown(self) -> None:
        """Stop background workers first so queued mail is not lost, then close the pool."""
        try:
            await self.token_janitor.stop()
            await self.notification_dispatcher.stop()
        finally:
            await self.engine.dispose()
            logger.info("Database connections closed")


def build_container(
    settings: Settings,
    engine: Optional[AsyncEngine] = None,
    mail_sender: Optional[IMailSender] = None,
) -> Container:
    """
    Assemble the service graph.

    Args:
        settings: Validated settings
        engine: Engine override (tests share one in-memory database)
        mail_sender: Transport override (tests record instead of sending)

    Returns:
        Fully wired container
    """
    engine = engine or create_engine(settings)
    session_factory = create_session_factory(engine)

    password_hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    token_signer = TokenSigner(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    user_repository = UserRepository()
    verification_token_repository = VerificationTokenRepository(
        expires_delta=timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
    )

    mail_sender = mail_sender or create_mail_sender(settings)
    notification_dispatcher = create_notification_dispatcher(settings, mail_sender)

    authentication_service = AuthenticationService(
        user_repository=user_repository,
        password_hasher=password_hasher,
    )
    email_verification_service = EmailVerificationService(
        settings=settings,
        user_repository=user_repository,
        token_repository=verification_token_repository,
        notification_dispatcher=notification_dispatcher,
    )
    auth_service = AuthService(
        user_repository=user_repository,
        password_hasher=password_hasher,
        token_signer=token_signer,
        authentication_service=authentication_service,
        email_verification_service=email_verification_service,
    )

    token_janitor = ExpiredTokenJanitor(
        session_factory=session_factory,
        email_verification_service=email_verification_service,
        interval_seconds=settings.VERIFICATION_TOKEN_PURGE_INTERVAL_SECONDS,
    )

    logger.debug(
        "Service container assembled",
        mail_sender=type(mail_sender).__name__,
        notification_dispatcher=type(notification_dispatcher).__name__,
    )

    return Container(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        password_hasher=password_hasher,
        token_signer=token_signer,
        user_repository=user_repository,
        verification_token_repository=verification_token_repository,
        mail_sender=mail_sender,
        notification_dispatcher=notification_dispatcher,
        authentication_service=authentication_service,
        email_verification_service=email_verification_service,
        auth_service=auth_service,
        token_janitor=token_janitor,
    )
