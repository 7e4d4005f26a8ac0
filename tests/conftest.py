"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Every test gets a fresh in-memory SQLite database (aiosqlite driver)
- A single connection is shared through StaticPool so all sessions of a
  test see the same data
- The app's get_db dependency is overridden with the test session
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ACCESS_TOKEN_SECRET"] = "a" * 32 + "-test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "r" * 32 + "-test-refresh-secret"
os.environ["REFRESH_TOKEN_MODE"] = "stateful"
os.environ["REVOCATION_BACKEND"] = "memory"
os.environ["OBSERVER_ACCOUNT_ID"] = ""
os.environ["ENABLE_METRICS"] = "false"
os.environ["SMTP_HOST"] = ""

TEST_PASSWORD = "testpassword123"
TEST_USER_EMAIL = "reader@example.com"
TEST_ADMIN_EMAIL = "author@example.com"


# --- Settings Fixtures ---


@pytest.fixture
def settings():
    """The live settings object; patch attributes with monkeypatch."""
    from plotdesk.core.config import settings as app_settings

    return app_settings


@pytest.fixture
def stateless_mode(settings, monkeypatch):
    """Run the test with REFRESH_TOKEN_MODE=stateless."""
    monkeypatch.setattr(settings, "refresh_token_mode", "stateless")


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an in-memory SQLite engine with all tables."""
    from plotdesk.core.database import Base
    from plotdesk.models import Account, PasswordReset, RefreshToken, TokenRevocation  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def revocation_store():
    """In-memory revocation store installed on the app for HTTP tests."""
    from plotdesk.services.revocation import MemoryRevocationStore

    return MemoryRevocationStore()


@pytest.fixture
def mailer():
    """Mailer that records messages instead of sending them."""
    from plotdesk.services.mailer import LogMailer

    return LogMailer()


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession, revocation_store, mailer
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override.

    ASGITransport does not run the lifespan, so the revocation store and
    mailer the lifespan would build are installed by hand.
    """
    from plotdesk.core.database import get_db
    from plotdesk.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.revocation_store = revocation_store
    app.state.mailer = mailer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()
    app.state.revocation_store = None
    app.state.mailer = None


# --- Test Factories ---


@pytest.fixture
def account_factory(db_session):
    """Factory for creating test Account objects."""
    from plotdesk.services.account import AccountService

    counter = {"n": 0}

    async def _create_account(
        email: str | None = None,
        password: str = TEST_PASSWORD,
        is_admin: bool = False,
        name: str = "Ada",
        surname: str = "Lovelace",
    ):
        if email is None:
            counter["n"] += 1
            email = f"account{counter['n']}@example.com"
        return await AccountService(db_session).register(
            email=email,
            password=password,
            name=name,
            surname=surname,
            is_admin=is_admin,
        )

    return _create_account


@pytest_asyncio.fixture
async def user_account(account_factory):
    """A regular (player app) account."""
    return await account_factory(email=TEST_USER_EMAIL)


@pytest_asyncio.fixture
async def admin_account(account_factory):
    """A CMS admin account."""
    return await account_factory(email=TEST_ADMIN_EMAIL, is_admin=True)


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest_asyncio.fixture
async def user_tokens(async_client: AsyncClient, user_account) -> dict:
    """Token pair from a real user login."""
    response = await async_client.post(
        "/auth/login",
        json={"email": TEST_USER_EMAIL, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return response.json()


@pytest_asyncio.fixture
async def admin_tokens(async_client: AsyncClient, admin_account) -> dict:
    """Token pair from a real CMS admin login."""
    response = await async_client.post(
        "/auth/cms/login",
        json={"email": TEST_ADMIN_EMAIL, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def user_headers(user_tokens) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_tokens['access_token']}"}


@pytest.fixture
def admin_headers(admin_tokens) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_tokens['access_token']}"}
