"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from typing import Any

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from blindtest.api.deps import get_email_service
from blindtest.config import settings
from blindtest.database import create_engine, get_session
from blindtest.main import app
from blindtest.models import User
from blindtest.services.credentials import PasswordStrategy
from blindtest.services.email import EmailService
from blindtest.services.passkeys import get_passkey_ceremony
from blindtest.services.rate_limit import get_rate_limiter
from blindtest.services.sessions import SessionIssuer
from blindtest.services.store import IdentityStore
from tests.support import RecordingEmailBackend, StubCeremony

USER_EMAIL = "test@example.com"
USER_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with empty rate limit windows."""
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """A fresh in-memory SQLite database per test.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    engine = create_engine(
        settings.database_url_test,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session: AsyncSession) -> IdentityStore:
    return IdentityStore(session)


@pytest.fixture
def ceremony() -> StubCeremony:
    return StubCeremony()


@pytest.fixture
def outbox() -> RecordingEmailBackend:
    return RecordingEmailBackend()


@pytest.fixture
async def client(
    session_factory, ceremony: StubCeremony, outbox: RecordingEmailBackend
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client. Each request gets its own database session."""

    async def override_get_session():
        async with session_factory() as request_session:
            yield request_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_passkey_ceremony] = lambda: ceremony
    app.dependency_overrides[get_email_service] = lambda: EmailService(backend=outbox)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def user(store: IdentityStore) -> User:
    """Create a test user with a password account."""
    user = await store.create_user(USER_EMAIL, "Test User")
    await PasswordStrategy(store, SessionIssuer(store)).register(user, USER_PASSWORD)
    await store.commit()
    return user


@pytest.fixture
async def other_user(store: IdentityStore) -> User:
    user = await store.create_user("other@example.com", "Other User")
    await PasswordStrategy(store, SessionIssuer(store)).register(user, USER_PASSWORD)
    await store.commit()
    return user


@pytest.fixture
async def user_token(store: IdentityStore, user: User) -> str:
    """Issue a session for the test user and return its bearer token."""
    session = await SessionIssuer(store).issue(user, ip_address="127.0.0.1", user_agent="pytest")
    await store.commit()
    return session.token


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    """Create authorization headers for the test user."""
    return {"Authorization": f"Bearer {user_token}"}


# Helper to make authenticated requests
class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)


@pytest.fixture
def authenticated_client(client: AsyncClient, auth_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated test client."""
    return AuthenticatedClient(client, auth_headers)
