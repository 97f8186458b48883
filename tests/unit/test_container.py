"""
Tests for service container assembly and the application lifespan.
"""
from auth_service.container import build_container
from auth_service.core.database import check_connection
from auth_service.main import create_app
from auth_service.models.user import User
from auth_service.services.notification_dispatcher import (
    BackgroundNotificationDispatcher,
    InlineNotificationDispatcher,
)
from tests.conftest import RecordingMailSender, count_rows, make_settings


async def test_container_shares_collaborators(container, mail_sender):
    assert container.mail_sender is mail_sender
    assert isinstance(container.notification_dispatcher, InlineNotificationDispatcher)
    assert container.auth_service.user_repository is container.user_repository
    assert container.auth_service.token_signer is container.token_signer
    assert container.email_verification_service.token_repository is container.verification_token_repository
    assert container.authentication_service.password_hasher is container.password_hasher


async def test_lifespan_creates_tables_and_runs_workers():
    settings = make_settings(
        DATABASE_CREATE_TABLES=True,
        MAIL_DELIVERY_MODE="background",
        VERIFICATION_TOKEN_PURGE_INTERVAL_SECONDS=3600,
    )
    container = build_container(settings, mail_sender=RecordingMailSender())
    app = create_app(settings=settings, container=container)
    dispatcher = container.notification_dispatcher
    assert isinstance(dispatcher, BackgroundNotificationDispatcher)

    async with app.router.lifespan_context(app):
        assert dispatcher.is_running
        assert container.token_janitor.is_running
        assert await check_connection(container.engine)
        async with container.session_factory() as session:
            assert await count_rows(session, User) == 0

    assert not dispatcher.is_running
    assert not container.token_janitor.is_running


async def test_background_signup_delivers_after_response():
    settings = make_settings(DATABASE_CREATE_TABLES=True, MAIL_DELIVERY_MODE="background")
    sender = RecordingMailSender()
    container = build_container(settings, mail_sender=sender)
    app = create_app(settings=settings, container=container)

    async with app.router.lifespan_context(app):
        async with container.session_factory() as session:
            await container.auth_service.signup(session, "alice", "alice@example.com", "pw123")
        await container.notification_dispatcher.join()

    assert [email.recipient for email in sender.sent] == ["alice@example.com"]
