"""Shared pytest fixtures for database-backed service tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from creditgate.config import CreditSettings, TierLimits
from creditgate.db.base import Base
from creditgate.db.models import core  # noqa: F401
from creditgate.db.models.core import UserAccount
from creditgate.services.policy import TierPolicyTable, ToolCostTable


class _AsyncSessionWrapper:
    """Async facade over a sync Session.

    With ``yield_on_execute`` every query hands control back to the event loop,
    which lets concurrent coroutines interleave the way they would on a real
    network round-trip.
    """

    def __init__(self, sync_session, *, yield_on_execute: bool = False) -> None:
        self._sync = sync_session
        self.yield_on_execute = yield_on_execute
        self.commits = 0

    async def execute(self, *args, **kwargs):
        if self.yield_on_execute:
            await asyncio.sleep(0)
        return self._sync.execute(*args, **kwargs)

    async def get(self, *args, **kwargs):
        return self._sync.get(*args, **kwargs)

    def add(self, obj) -> None:
        self._sync.add(obj)

    def add_all(self, objs) -> None:
        self._sync.add_all(objs)

    async def flush(self) -> None:
        self._sync.flush()

    async def commit(self) -> None:
        self.commits += 1
        self._sync.commit()

    async def rollback(self) -> None:
        self._sync.rollback()

    async def close(self) -> None:
        self._sync.close()


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def sync_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest_asyncio.fixture
async def session(sync_engine):
    SessionLocal = sessionmaker(bind=sync_engine, expire_on_commit=False)
    sync_session = SessionLocal()
    try:
        yield _AsyncSessionWrapper(sync_session)
    finally:
        sync_session.close()


@pytest.fixture
def open_session(sync_engine):
    """Factory for extra sessions on the shared engine, one per simulated request."""

    SessionLocal = sessionmaker(bind=sync_engine, expire_on_commit=False)
    opened = []

    def _open(*, yield_on_execute: bool = False) -> _AsyncSessionWrapper:
        sync_session = SessionLocal()
        opened.append(sync_session)
        return _AsyncSessionWrapper(sync_session, yield_on_execute=yield_on_execute)

    try:
        yield _open
    finally:
        for sync_session in opened:
            sync_session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def credit_settings() -> CreditSettings:
    return CreditSettings(
        tiers={
            "free": TierLimits(daily=10, monthly=50),
            "pro": TierLimits(daily=100, monthly=500),
            "enterprise": TierLimits(daily=-1, monthly=-1),
        },
        tool_costs={"ai_chat": 2, "ai_summary": 1, "ai_resume": 3, "json_format": 0},
    )


@pytest.fixture
def policies(credit_settings) -> TierPolicyTable:
    return TierPolicyTable.from_settings(credit_settings)


@pytest.fixture
def costs(credit_settings) -> ToolCostTable:
    return ToolCostTable.from_settings(credit_settings)


@pytest.fixture
def make_account(session, clock):
    """Create an account whose windows are current as of ``clock``."""

    async def _make(
        *,
        tier: str = "free",
        used_today: int = 0,
        used_month: int = 0,
        role: str = "user",
        email: str | None = None,
        day_start: datetime | None = None,
        month_start: datetime | None = None,
    ) -> UserAccount:
        now = clock()
        account = UserAccount(
            email=email,
            role=role,
            subscription_tier=tier,
            credits_used_today=used_today,
            credits_used_month=used_month,
            day_window_start=day_start or now.replace(hour=0, minute=0, second=0, microsecond=0),
            month_window_start=month_start
            or now.replace(day=1, hour=0, minute=0, second=0, microsecond=0),
        )
        session.add(account)
        await session.flush()
        return account

    return _make
