"""Shared test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (StaticPool keeps the single
connection alive for the engine's lifetime). PayPal is never contacted:
tests patch the functions in ``app.billing.paypal_client``.
"""

import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.auth.jwt import create_access_token
from app.billing.paypal_client import PayPalCredentials
from app.database import Base, get_db
from app.main import app
from app.models.profile import Profile

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Profiles and subscriptions
# ---------------------------------------------------------------------------


async def _create_profile(
    db_session: AsyncSession,
    role: str = "guardian",
    status: str = "active",
    exempt: bool = False,
) -> Profile:
    """Insert a profile directly in the DB."""
    unique = uuid.uuid4().hex[:8]
    profile = Profile(
        email=f"{role}-{unique}@test.com",
        name=f"Test {role.title()}",
        role=role,
        status=status,
        subscription_exempt=exempt,
    )
    db_session.add(profile)
    await db_session.flush()
    return profile


def _auth_headers_for(profile: Profile) -> dict[str, str]:
    token = create_access_token({"sub": str(profile.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def guardian(db_session: AsyncSession) -> Profile:
    return await _create_profile(db_session)


@pytest_asyncio.fixture
async def guardian_headers(guardian: Profile) -> dict[str, str]:
    return _auth_headers_for(guardian)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> Profile:
    return await _create_profile(db_session, role="admin")


@pytest_asyncio.fixture
async def admin_headers(admin: Profile) -> dict[str, str]:
    return _auth_headers_for(admin)


# ---------------------------------------------------------------------------
# PayPal
# ---------------------------------------------------------------------------


@pytest.fixture
def paypal_creds():
    """Configured credentials and a canned access token, no network."""
    creds = PayPalCredentials(
        client_id="client-id",
        client_secret="client-secret",
        api_base="https://paypal.test",
        webhook_id="WH-TEST",
    )
    with (
        patch("app.billing.paypal_client.paypal_credentials", return_value=creds),
        patch(
            "app.billing.paypal_client.get_access_token",
            new_callable=AsyncMock,
            return_value="access-token",
        ),
    ):
        yield creds
