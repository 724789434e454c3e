"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Iterator
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Settings are read once and cached; pin the test environment before any import.
os.environ["HQ_REDIS_URL"] = ""
os.environ["HQ_JWT_SECRET"] = "test-secret-with-enough-bytes-for-hs256"
os.environ["HQ_STRIPE_SECRET_KEY"] = ""
os.environ["HQ_STRIPE_WEBHOOK_SECRET"] = ""
os.environ["HQ_LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.auth.jwt import create_access_token
from habitquest.config import get_settings
from habitquest.database import close_db, create_schema, get_session, init_db
from habitquest.db.models import Habit, UserProfile
from habitquest.errors import GatewayError
from habitquest.gamification.seed import seed_catalog
from habitquest.main import create_app
from habitquest.payments.gateway import BasePaymentGateway, PaymentIntent, get_payment_gateway
from habitquest.users.service import get_or_create_profile

get_settings.cache_clear()

TEST_SUBJECT = "auth0|hero"
OTHER_SUBJECT = "auth0|rival"


class FakePaymentGateway(BasePaymentGateway):
    """In-memory stand-in for Stripe."""

    def __init__(self) -> None:
        self.intents: dict[str, PaymentIntent] = {}
        self.idempotency_keys: list[str] = []
        self.fail_next = False

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntent:
        if self.fail_next:
            self.fail_next = False
            raise GatewayError("Payment provider unreachable")
        self.idempotency_keys.append(idempotency_key)
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = PaymentIntent(
            id=intent_id,
            amount=amount,
            currency=currency,
            status="requires_payment_method",
            client_secret=f"{intent_id}_secret_abc",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        if intent_id not in self.intents:
            raise GatewayError(f"No such payment_intent: '{intent_id}'")
        return self.intents[intent_id]

    def succeed(self, intent_id: str) -> None:
        self.intents[intent_id] = replace(self.intents[intent_id], status="succeeded")


def auth_headers(subject: str = TEST_SUBJECT, email: str | None = "hero@example.com") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject, email=email)}"}


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[None, None]:
    """Fresh SQLite database per test, schema created and catalog seeded."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'habitquest.db'}")
    await create_schema()
    async for session in get_session():
        await seed_catalog(session)
        break
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for service-level tests."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def profile(db_session: AsyncSession) -> UserProfile:
    return await get_or_create_profile(db_session, TEST_SUBJECT, email="hero@example.com")


@pytest.fixture
def fake_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def app(database: None, fake_gateway: FakePaymentGateway) -> FastAPI:
    """App wired to the test database; the lifespan is not run."""
    application = create_app()
    application.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient) -> AsyncClient:
    """Client carrying a bearer token for TEST_SUBJECT."""
    client.headers.update(auth_headers())
    return client


@pytest.fixture
def payments_enabled(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Configure Stripe credentials for the duration of a test."""
    monkeypatch.setenv("HQ_STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("HQ_STRIPE_WEBHOOK_SECRET", "whsec_test_456")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


async def create_habit(client: AsyncClient, **overrides: object) -> dict:
    """Create a habit through the API and return its JSON."""
    body = {"name": "Morning run", "category": "physical", "exp_reward": 50, "penalty": "15.00"}
    body.update(overrides)
    response = await client.post("/api/v1/habits", json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def backdate_habit(habit_id: int, days: int = 30) -> None:
    """Move a habit's creation date into the past so earlier days can be assessed."""
    async for session in get_session():
        await session.execute(
            update(Habit)
            .where(Habit.id == habit_id)
            .values(created_at=datetime.now(timezone.utc) - timedelta(days=days))
        )
        await session.commit()
        break
