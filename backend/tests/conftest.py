"""Pytest configuration and fixtures for async testing."""
from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from journey.database import Base
from journey.integrations.notification_service import NotificationService
from journey.main import app
from journey.models.user_journey import UserJourney
from tests.utils.factories import UserJourneyFactory

# In-memory database shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestAsyncSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.

    Yields:
        AsyncSession: Database session for testing
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestAsyncSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


class RelayStub:
    """Records MailRelay requests and answers with a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict = {"status": "queued"}
        self.raise_timeout = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_timeout:
            raise httpx.ReadTimeout("relay did not answer", request=request)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def relay() -> RelayStub:
    return RelayStub()


@pytest.fixture
def notifier(relay: RelayStub) -> NotificationService:
    """Notification service talking to the relay stub instead of MailRelay."""
    return NotificationService(
        api_key="test-token",
        host="relay.test",
        sender_email="admin@example.com",
        sender_name="Mulheres em Convergência",
        timeout=5.0,
        transport=httpx.MockTransport(relay),
    )


async def _mock_current_user() -> dict:
    """Admin operator; Admin inherits every role."""
    return {
        "sub": "operator-1",
        "email": "operator@example.com",
        "role": "Admin",
    }


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    notifier: NotificationService,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client with database, auth and notifier overrides.

    Yields:
        AsyncClient: Async HTTP client for API testing
    """
    from journey.api.deps import get_current_user, get_db, get_notification_service, get_session_factory

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = _mock_current_user
    app.dependency_overrides[get_notification_service] = lambda: notifier
    app.dependency_overrides[get_session_factory] = lambda: TestAsyncSessionLocal

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def add_journey(db_session: AsyncSession) -> Callable:
    """
    Insert a committed journey record.

    Usage:
        await add_journey(user_id="u1", journey_stage="signup", hours_ago=72)
    """

    async def _add(hours_ago: float = 1.0, **overrides) -> UserJourney:
        now = datetime.utcnow()
        data = UserJourneyFactory.create(overrides)
        data.setdefault("created_at", now - timedelta(hours=hours_ago))
        data.setdefault("updated_at", data["created_at"])
        record = UserJourney(**data)
        db_session.add(record)
        await db_session.commit()
        await db_session.refresh(record)
        return record

    return _add
