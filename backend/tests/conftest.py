"""Pytest configuration and shared fixtures for backend tests."""

import asyncio
import os
import sys
from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Add parent directory to path for package discovery
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment BEFORE importing application modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")

from headshot_studio.core.database import Base
from headshot_studio.models import Account, GenerationKind, LedgerCategory, LedgerEntry
from headshot_studio.providers.base import GenerationProvider
from headshot_studio.services.alerts import AlertSink
from headshot_studio.services.auth_service import TokenRevocationList
from headshot_studio.services.credit_ledger import CreditLedger
from headshot_studio.services.errors import SettlementInconsistency


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Provide a fresh SQLite database per test.

    A file database with NullPool gives every session its own connection,
    so concurrent transactions really contend for the write lock.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'studio.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def ledger(session_factory) -> CreditLedger:
    return CreditLedger(session_factory, signup_bonus=10)


@pytest_asyncio.fixture
async def account(ledger) -> Account:
    """An account holding the 10 credit signup bonus."""
    return await ledger.open_account("user@example.com", "not-a-real-hash", "Test User")


@pytest_asyncio.fixture
async def empty_account(ledger) -> Account:
    """An account with a zero balance (bonus spent)."""
    account = await ledger.open_account("broke@example.com", "not-a-real-hash")
    await ledger.apply_delta(account.id, -10, LedgerCategory.USAGE, "Spent bonus")
    return account


async def ledger_sum(session_factory, account_id: str) -> int:
    """Sum of all ledger deltas for an account."""
    async with session_factory() as db:
        total = await db.scalar(
            select(func.coalesce(func.sum(LedgerEntry.delta), 0)).where(
                LedgerEntry.account_id == account_id
            )
        )
    return int(total)


class FakeProvider(GenerationProvider):
    """Generation provider with scripted behaviour."""

    name = "fake"

    def __init__(
        self,
        result: str = "https://cdn.example.com/result.jpg",
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.started = asyncio.Event()

    async def generate(self, kind: GenerationKind, parameters, image, mime_type) -> str:
        self.calls.append(
            {"kind": kind, "parameters": parameters, "image": image, "mime_type": mime_type}
        )
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingAlertSink(AlertSink):
    """Alert sink that keeps every alert in memory."""

    def __init__(self):
        self.alerts: list[SettlementInconsistency] = []

    async def settlement_inconsistency(self, error: SettlementInconsistency) -> None:
        self.alerts.append(error)


class FakeRedis:
    """In-memory stand-in for the few Redis commands the app issues."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.published: list[tuple[str, str]] = []

    async def setex(self, name: str, time: int, value: str) -> bool:
        self.values[name] = value
        self.ttls[name] = time
        return True

    async def exists(self, *names: str) -> int:
        return sum(1 for name in names if name in self.values)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 0


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def revocations(fake_redis) -> TokenRevocationList:
    return TokenRevocationList(fake_redis)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


@pytest_asyncio.fixture
async def async_client(ledger, fake_provider, alert_sink, revocations):
    """HTTP client for the app with its collaborators overridden."""
    from headshot_studio.api.deps import (
        get_alert_sink,
        get_credit_ledger,
        get_generation_provider,
        get_token_revocations,
    )
    from headshot_studio.main import app

    app.dependency_overrides[get_credit_ledger] = lambda: ledger
    app.dependency_overrides[get_generation_provider] = lambda: fake_provider
    app.dependency_overrides[get_alert_sink] = lambda: alert_sink
    app.dependency_overrides[get_token_revocations] = lambda: revocations

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(account):
    """Bearer header for the default test account."""
    from headshot_studio.services.auth_service import AuthService

    token, _ = AuthService.create_access_token(account.id)
    return {"Authorization": f"Bearer {token}"}


# Minimal valid image headers for upload tests
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
