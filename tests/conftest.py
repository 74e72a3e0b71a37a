"""
Test fixtures for the Service Marketplace API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - client: Async HTTP test client (unauthenticated)
  - authenticated_client: Test client with a pre-registered customer and token
  - admin_client: Test client with a pre-registered ADMIN user and token
  - mailbox: Captures outgoing emails instead of sending them
  - reset_clock: Controllable clock behind the reset-token generator

Key design decisions:
  - Settings are read from the environment at import time, so the required
    SECRET_KEY is set here before anything from marketplace_api is imported.
  - bcrypt runs with the minimum work factor (4) to keep the suite fast;
    the production factor (12) is asserted separately in test_security.py.
  - get_db is overridden with the same commit-on-domain-error semantics as
    production, so compensating writes (reset-field rollback) are visible.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-test-suite")
os.environ["ENVIRONMENT"] = "test"

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from marketplace_api.database import Base, get_db
from marketplace_api.dependencies import (
    get_email_sender,
    get_password_hasher,
    get_reset_token_generator,
)
from marketplace_api.exceptions import EmailDeliveryError, MarketplaceAPIError
from marketplace_api.main import app
from marketplace_api.models.user import User, UserRole
from marketplace_api.security import PasswordHasher, ResetTokenGenerator


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PASSWORD = "SecurePass123!"


def signup_payload(email: str = "testuser@example.com", password: str = TEST_PASSWORD, **overrides) -> dict:
    """A valid POST /signup/user body."""
    payload = {
        "username": "testuser",
        "email": email,
        "password": password,
        "passwordConfirm": password,
        "phoneNumber": "+44 7700 900123",
        "location": {
            "address": "221B Baker Street",
            "city": "London",
            "zipCode": "NW1 6XE",
        },
    }
    payload.update(overrides)
    return payload


class Mailbox:
    """Email sender that records messages instead of delivering them."""

    def __init__(self):
        self.messages: list[dict] = []
        self.fail = False

    async def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise EmailDeliveryError()
        self.messages.append({"recipient": recipient, "subject": subject, "body": body})

    def last_reset_token(self) -> str:
        body = self.messages[-1]["body"]
        return body.split("token=", 1)[1].split()[0]


class MutableClock:
    """A clock tests can move forward."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fast_hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def mailbox():
    return Mailbox()


@pytest.fixture
def reset_clock():
    return MutableClock()


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
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine, fast_hasher, mailbox, reset_clock):
    """
    Async HTTP test client with the test database and fakes injected.

    Overrides:
      - get_db: the in-memory test database
      - get_password_hasher: bcrypt with 4 rounds
      - get_email_sender: the mailbox fixture
      - get_reset_token_generator: 10-minute tokens on the reset_clock
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except MarketplaceAPIError:
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    reset_tokens = ResetTokenGenerator(lifetime=timedelta(minutes=10), clock=reset_clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_password_hasher] = lambda: fast_hasher
    app.dependency_overrides[get_email_sender] = lambda: mailbox
    app.dependency_overrides[get_reset_token_generator] = lambda: reset_tokens

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(client):
    """
    Test client with a pre-registered customer and bearer token.

    Signs up via the real signup endpoint, then sets the Authorization
    header on the client for all subsequent requests. The auth cookie set
    by signup is dropped so tests exercise the header path explicitly.
    """
    response = await client.post("/signup/user", json=signup_payload())
    assert response.status_code == 201, f"Signup failed: {response.text}"
    client.cookies.clear()
    token = response.json()["token"]
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest_asyncio.fixture
async def admin_client(client, db_engine):
    """
    Test client with a pre-registered ADMIN user and bearer token.

    Signs up normally, then updates the role directly in the database,
    the same way demo/promote_admin.py provisions operators.
    """
    signup_response = await client.post(
        "/signup/user",
        json=signup_payload(email="admin@example.com", password="AdminPass123!", username="admin"),
    )
    assert signup_response.status_code == 201
    user_id = uuid.UUID(signup_response.json()["user"]["id"])

    async_session = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False,
    )
    async with async_session() as session:
        await session.execute(
            update(User)
            .where(User.id == user_id)
            .values(role=UserRole.ADMIN)
        )
        await session.commit()

    # The role is read from the database on every request, not from the
    # token, so the signup token already works as an admin token
    client.cookies.clear()
    client.headers["Authorization"] = f"Bearer {signup_response.json()['token']}"
    return client
