"""
Test fixtures for the Bank Cards API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - session_factory: Session maker bound to the test engine (for the sweeper)
  - client: Async HTTP test client with get_db pointed at the test database
  - make_user / make_card: Factories that insert rows directly, bypassing the
    services. make_card is how tests seed balances and already-expired cards,
    neither of which the public API can produce.
  - signup / admin_headers: Register users through the real /auth endpoints

Key design decisions:
  - Required settings are provided through environment variables before
    any app module is imported.
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database.
  - The get_db override mirrors production: domain errors commit (so lazy
    expiry sticks), anything else rolls back.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
# base64 of the 32 ASCII bytes "0123456789abcdef0123456789abcdef"
os.environ.setdefault("CARD_ENCRYPTION_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.database import Base, get_db
from app.exceptions import BankCardsError, StorageError
from app.main import app
from app.models.card import Card, CardStatus, to_cents
from app.models.user import User, UserRole
from app.security import card_cipher
from app.services.card_lifecycle import utc_today


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    """Session maker bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except StorageError:
                await session.rollback()
                raise
            except BankCardsError:
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def make_user(db_session):
    """Insert a user account directly and return it."""

    async def _make_user(role: UserRole = UserRole.USER, email: str | None = None) -> User:
        user = User(
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            hashed_password="not-a-real-hash",
            role=role,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_card(db_session):
    """
    Insert a card directly and return it.

    Accepts any balance, status and expiry date, including dates in the
    past that create_card() would reject.
    """

    async def _make_card(
        owner: User,
        balance: str = "0.00",
        status: CardStatus = CardStatus.ACTIVE,
        expiry_date: date | None = None,
        owner_name: str = "Test Owner",
        card_number: str = "4111111111111111",
    ) -> Card:
        card = Card(
            owner_account_id=owner.id,
            card_number_encrypted=card_cipher.encrypt(card_number),
            owner_name=owner_name,
            expiry_date=expiry_date or utc_today() + timedelta(days=365),
            status=status,
            balance_cents=to_cents(Decimal(balance)),
        )
        db_session.add(card)
        await db_session.flush()
        return card

    return _make_card


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def signup(client):
    """
    Register a user through POST /auth/signup.

    Returns (account_id, headers) where headers carries the bearer token.
    """

    async def _signup(email: str, password: str = "StrongPass99!") -> tuple[uuid.UUID, dict]:
        response = await client.post(
            "/auth/signup",
            json={"email": email, "password": password},
        )
        assert response.status_code == 201, f"Signup failed: {response.text}"
        data = response.json()
        return uuid.UUID(data["account_id"]), {"Authorization": f"Bearer {data['token']}"}

    return _signup


@pytest_asyncio.fixture
async def admin_headers(signup, session_factory):
    """
    Headers for an ADMIN user.

    Signs up normally, then promotes the account directly in the database,
    the same way demo/promote_admin.py provisions admins.
    """
    user_id, headers = await signup("admin@example.com", "AdminPass123!")
    async with session_factory() as session:
        await session.execute(
            update(User).where(User.id == user_id).values(role=UserRole.ADMIN)
        )
        await session.commit()
    return headers
