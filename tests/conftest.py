"""
Pytest configuration and fixtures for auth service testing.
Every test gets its own in-memory SQLite database, service container and
a recording mail transport, so nothing leaves the process.
"""
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from auth_service.container import Container, build_container
from auth_service.core.config import Settings
from auth_service.core.database import create_engine, create_tables
from auth_service.core.exceptions import DeliveryError
from auth_service.interfaces.notification_interface import NotificationEmail
from auth_service.main import create_app

TEST_SECRET_KEY = "test-signing-key-5f1c0a9e7b3d4c2a8e6f"
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingMailSender:
    """Mail transport double that keeps every message it is given."""

    def __init__(self):
        self.sent: List[NotificationEmail] = []
        self.fail = False

    async def send(self, email: NotificationEmail) -> None:
        if self.fail:
            raise DeliveryError("smtp server unavailable")
        self.sent.append(email)

    @property
    def last(self) -> Optional[NotificationEmail]:
        return self.sent[-1] if self.sent else None

    def last_token(self) -> str:
        """Token at the end of the most recent verification link."""
        assert self.last is not None, "no email was sent"
        return self.last.body.rsplit("/", 1)[-1]


def make_settings(**overrides) -> Settings:
    values = {
        "SECRET_KEY": TEST_SECRET_KEY,
        "DATABASE_URL": TEST_DATABASE_URL,
        "ENVIRONMENT": "development",
        "BCRYPT_ROUNDS": 4,
        "BASE_URL": "http://localhost:8080",
        "MAIL_BACKEND": "console",
        "MAIL_DELIVERY_MODE": "inline",
        "VERIFICATION_TOKEN_PURGE_INTERVAL_SECONDS": 0,
        "LOG_LEVEL": "INFO",
        "LOG_JSON": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def count_rows(db: AsyncSession, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with all tables."""
    engine = create_engine(settings)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


@pytest_asyncio.fixture
async def container(settings, engine, mail_sender) -> AsyncGenerator[Container, None]:
    container = build_container(settings, engine=engine, mail_sender=mail_sender)
    await container.startup()
    yield container
    await container.token_janitor.stop()
    await container.notification_dispatcher.stop()


@pytest_asyncio.fixture
async def db_session(container: Container) -> AsyncGenerator[AsyncSession, None]:
    async with container.session_factory() as session:
        yield session


@pytest.fixture
def auth_service(container: Container):
    return container.auth_service


@pytest.fixture
def app(settings, container):
    return create_app(settings=settings, container=container)


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
