"""
Unit tests for the auth service against an in-memory database.
"""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from auth_service.core.exceptions import (
    AuthenticationError,
    ConflictError,
    DeliveryError,
    NotFoundError,
    ValidationError,
)
from auth_service.models.base import utcnow
from auth_service.models.user import User
from auth_service.models.verification_token import VerificationToken
from auth_service.repositories.verification_token_repository import VerificationTokenRepository
from auth_service.services.auth.authentication_service import AuthenticationService
from tests.conftest import count_rows
from tests.factories import TEST_PASSWORD, VerificationTokenFactory, create_user


async def _signup_alice(auth_service, db_session):
    return await auth_service.signup(db_session, "alice", "alice@example.com", "pw123")


async def _tokens_for(db_session, user_id):
    result = await db_session.execute(
        select(VerificationToken)
        .where(VerificationToken.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalars().all()


class TestSignup:

    async def test_creates_disabled_user_with_one_token(self, auth_service, db_session, container):
        user = await _signup_alice(auth_service, db_session)

        stored = await container.user_repository.get_by_username(db_session, "alice")
        assert stored.id == user.id
        assert stored.enabled is False
        assert stored.verified_at is None
        assert stored.password_hash != "pw123"
        assert container.password_hasher.verify("pw123", stored.password_hash)

        tokens = await _tokens_for(db_session, user.id)
        assert len(tokens) == 1
        assert tokens[0].consumed_at is None

    async def test_sends_verification_link(self, auth_service, db_session, mail_sender):
        user = await _signup_alice(auth_service, db_session)

        tokens = await _tokens_for(db_session, user.id)
        assert len(mail_sender.sent) == 1
        email = mail_sender.last
        assert email.recipient == "alice@example.com"
        assert email.subject == "Please Activate your Account"
        assert (
            f"http://localhost:8080/api/auth/accountVerification/{tokens[0].token}" in email.body
        )

    async def test_email_is_stored_lower_cased(self, auth_service, db_session):
        user = await auth_service.signup(db_session, "bob", "Bob@Example.COM", "pw123")

        assert user.email == "bob@example.com"

    async def test_duplicate_username_rejected_without_writes(self, auth_service, db_session, mail_sender):
        await _signup_alice(auth_service, db_session)

        with pytest.raises(ConflictError):
            await auth_service.signup(db_session, "alice", "other@example.com", "pw456")

        assert await count_rows(db_session, User) == 1
        assert await count_rows(db_session, VerificationToken) == 1
        assert len(mail_sender.sent) == 1

    async def test_duplicate_email_rejected_case_insensitively(self, auth_service, db_session):
        await _signup_alice(auth_service, db_session)

        with pytest.raises(ConflictError):
            await auth_service.signup(db_session, "alice2", "ALICE@example.com", "pw456")

        assert await count_rows(db_session, User) == 1

    @pytest.mark.parametrize(
        "username,email,password",
        [
            ("", "a@example.com", "pw"),
            ("   ", "a@example.com", "pw"),
            ("a", "  ", "pw"),
            ("a", "a@example.com", ""),
            ("a", "a@example.com", "x" * 73),
        ],
    )
    async def test_invalid_fields_rejected(self, auth_service, db_session, username, email, password):
        with pytest.raises(ValidationError):
            await auth_service.signup(db_session, username, email, password)

        assert await count_rows(db_session, User) == 0

    async def test_delivery_failure_keeps_account(self, auth_service, db_session, mail_sender, container):
        mail_sender.fail = True

        with pytest.raises(DeliveryError):
            await _signup_alice(auth_service, db_session)

        stored = await container.user_repository.get_by_username(db_session, "alice")
        assert stored is not None
        assert stored.enabled is False
        assert len(await _tokens_for(db_session, stored.id)) == 1


class TestVerifyAccount:

    async def test_enables_account(self, auth_service, db_session, mail_sender, container):
        await _signup_alice(auth_service, db_session)

        user = await auth_service.verify_account(db_session, mail_sender.last_token())

        assert user.enabled is True
        stored = await container.user_repository.get_by_username(db_session, "alice")
        assert stored.enabled is True
        assert stored.verified_at is not None

    async def test_unknown_token_changes_nothing(self, auth_service, db_session, container):
        await _signup_alice(auth_service, db_session)

        with pytest.raises(NotFoundError):
            await auth_service.verify_account(db_session, "no-such-token")

        stored = await container.user_repository.get_by_username(db_session, "alice")
        assert stored.enabled is False
        tokens = await _tokens_for(db_session, stored.id)
        assert [token.consumed_at for token in tokens] == [None]

    async def test_second_verification_conflicts_and_keeps_state(
        self, auth_service, db_session, mail_sender, container
    ):
        await _signup_alice(auth_service, db_session)
        token = mail_sender.last_token()
        await auth_service.verify_account(db_session, token)
        first = await container.user_repository.get_by_username(db_session, "alice")
        verified_at = first.verified_at

        with pytest.raises(ConflictError):
            await auth_service.verify_account(db_session, token)

        stored = await container.user_repository.get_by_username(db_session, "alice")
        assert stored.enabled is True
        assert stored.verified_at == verified_at

    async def test_expired_token_rejected(self, auth_service, db_session, container):
        user = await create_user(db_session, username="carol")
        expired = VerificationTokenFactory(
            user_id=user.id,
            created_at=utcnow() - timedelta(days=2),
            expires_at=utcnow() - timedelta(days=1),
        )
        db_session.add(expired)
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await auth_service.verify_account(db_session, expired.token)

        stored = await container.user_repository.get_by_username(db_session, "carol")
        assert stored.enabled is False

    async def test_missing_owner_rejected(self, db_session, container):
        container.user_repository.get_by_id = AsyncMock(return_value=None)
        user = await create_user(db_session, username="dave")
        token = VerificationTokenFactory(user_id=user.id)
        db_session.add(token)
        await db_session.commit()

        with pytest.raises(NotFoundError) as exc_info:
            await container.auth_service.verify_account(db_session, token.token)

        assert exc_info.value.message == "user not found"


class TestLogin:

    async def test_login_after_verification(self, auth_service, db_session, mail_sender, container):
        await _signup_alice(auth_service, db_session)
        await auth_service.verify_account(db_session, mail_sender.last_token())

        result = await auth_service.login(db_session, "alice", "pw123")

        assert result.username == "alice"
        claims = container.token_signer.validate(result.authentication_token)
        assert claims.subject == "alice"
        assert claims.expires_at == result.expires_at

    async def test_failures_are_indistinguishable(self, auth_service, db_session, mail_sender):
        await _signup_alice(auth_service, db_session)
        await create_user(db_session, username="erin", enabled=True)

        errors = []
        for username, password in [("alice", "pw123"), ("erin", "wrong"), ("nobody", "pw123")]:
            with pytest.raises(AuthenticationError) as exc_info:
                await auth_service.login(db_session, username, password)
            errors.append((str(exc_info.value), exc_info.value.to_dict()))

        assert len(set(message for message, _ in errors)) == 1
        assert all(body == errors[0][1] for _, body in errors)

    async def test_enabled_factory_user_can_login(self, auth_service, db_session):
        await create_user(db_session, username="frank", enabled=True)

        result = await auth_service.login(db_session, "frank", TEST_PASSWORD)

        assert result.username == "frank"


class TestResendVerification:

    async def test_pending_account_gets_new_token(self, auth_service, db_session, mail_sender):
        user = await _signup_alice(auth_service, db_session)
        first_token = mail_sender.last_token()

        await auth_service.resend_verification(db_session, "Alice@Example.com")

        second_token = mail_sender.last_token()
        assert len(mail_sender.sent) == 2
        assert second_token != first_token

        tokens = {token.token: token for token in await _tokens_for(db_session, user.id)}
        assert tokens[first_token].consumed_at is not None
        assert tokens[second_token].consumed_at is None

    async def test_superseded_token_cannot_verify(self, auth_service, db_session, mail_sender):
        await _signup_alice(auth_service, db_session)
        first_token = mail_sender.last_token()
        await auth_service.resend_verification(db_session, "alice@example.com")

        with pytest.raises(ConflictError):
            await auth_service.verify_account(db_session, first_token)

        user = await auth_service.verify_account(db_session, mail_sender.last_token())
        assert user.enabled is True

    async def test_unknown_and_enabled_addresses_ignored(self, auth_service, db_session, mail_sender):
        await create_user(db_session, username="grace", enabled=True)

        await auth_service.resend_verification(db_session, "nobody@example.com")
        await auth_service.resend_verification(db_session, "grace@example.com")

        assert mail_sender.sent == []


async def test_purge_expired_tokens(db_session, container):
    user = await create_user(db_session, username="heidi")
    db_session.add_all(
        [
            VerificationTokenFactory(user_id=user.id, expires_at=utcnow() - timedelta(hours=1)),
            VerificationTokenFactory(user_id=user.id),
        ]
    )
    await db_session.commit()

    removed = await container.email_verification_service.purge_expired_tokens(db_session)

    assert removed == 1
    assert await count_rows(db_session, VerificationToken) == 1


class TestAuthenticationServiceMocked:
    """Credential check with mocked collaborators."""

    @pytest.fixture
    def user_repository(self):
        return AsyncMock()

    @pytest.fixture
    def password_hasher(self):
        return MagicMock()

    @pytest.fixture
    def service(self, user_repository, password_hasher):
        return AuthenticationService(user_repository=user_repository, password_hasher=password_hasher)

    async def test_unknown_user_burns_a_hash(self, service, user_repository, password_hasher):
        user_repository.get_by_username.return_value = None

        with pytest.raises(AuthenticationError):
            await service.authenticate(AsyncMock(), "nobody", "pw123")

        password_hasher.verify_dummy.assert_called_once_with("pw123")
        password_hasher.verify.assert_not_called()

    async def test_disabled_user_checked_after_password(self, service, user_repository, password_hasher):
        user_repository.get_by_username.return_value = User(id=1, username="alice", password_hash="h", enabled=False)
        password_hasher.verify.return_value = True

        with pytest.raises(AuthenticationError):
            await service.authenticate(AsyncMock(), "alice", "pw123")

        password_hasher.verify.assert_called_once_with("pw123", "h")
