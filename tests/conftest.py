"""Pytest fixtures for commission payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from commission_payroll.config import Settings
from commission_payroll.database import make_session_factory
from commission_payroll.models import Base, Client, CommissionLedgerEntry, User
from commission_payroll.stores import LedgerStore

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2024, 1, 31)
PAYOUT_DATE = date(2024, 2, 5)


def at(day: int, hour: int = 12, month: int = 1) -> datetime:
    """A UTC timestamp in 2024, January by default."""
    return datetime(2024, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults, independent of the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def engine():
    """Create a fresh test database engine per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """A file-backed database, so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = make_session_factory(engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def make_user(session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory for users."""
    counter = 0

    async def _make(name: str | None = None, email: str | None = None, role: str = "coach") -> User:
        nonlocal counter
        counter += 1
        user = User(
            name=name or f"User {counter}",
            email=email or f"user{counter}@example.com",
            role=role,
        )
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest_asyncio.fixture
async def make_client(session: AsyncSession) -> Callable[..., Awaitable[Client]]:
    """Factory for clients."""

    async def _make(name: str = "Acme Fitness", lead_source: str | None = "referral") -> Client:
        client = Client(name=name, lead_source=lead_source)
        session.add(client)
        await session.flush()
        return client

    return _make


@pytest_asyncio.fixture
async def make_entry(session: AsyncSession) -> Callable[..., Awaitable[CommissionLedgerEntry]]:
    """Factory for pending ledger entries."""

    async def _make(
        user: User,
        commission: str | Decimal,
        created_at: datetime | None = None,
        client: Client | None = None,
        gross: str | Decimal = "1000.00",
        net: str | Decimal = "970.00",
        basis: dict[str, Any] | None = None,
        split_role: str | None = None,
    ) -> CommissionLedgerEntry:
        entry = CommissionLedgerEntry(
            user_id=user.user_id,
            client_id=client.client_id if client else None,
            gross_amount=Decimal(gross),
            net_amount=Decimal(net),
            commission_amount=Decimal(commission),
            calculation_basis=basis if basis is not None else {"basis": "net", "rate": "0.10"},
            split_role=split_role,
            created_at=created_at or at(15),
        )
        return await LedgerStore(session).add_entry(entry)

    return _make


@pytest_asyncio.fixture
async def admins(make_user) -> tuple[User, User]:
    """Two distinct payroll admins: creator and approver."""
    creator = await make_user(name="Casey Creator", email="creator@example.com", role="admin")
    approver = await make_user(name="Avery Approver", email="approver@example.com", role="admin")
    return creator, approver
