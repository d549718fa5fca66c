"""Tests for the lazy Database wrapper."""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from sqlalchemy import create_engine, inspect

from creditgate.config import DatabaseSettings, Settings
from creditgate.db import session as db_session
from creditgate.db.session import Database


class FakeConnection:
    def __init__(self, sync_engine):
        self.sync_engine = sync_engine

    async def run_sync(self, fn):
        with self.sync_engine.begin() as conn:
            fn(conn)


class FakeEngine:
    def __init__(self, sync_engine):
        self.sync_engine = sync_engine
        self.disposed = False

    @asynccontextmanager
    async def begin(self):
        yield FakeConnection(self.sync_engine)

    async def dispose(self):
        self.disposed = True


class FakeSession:
    def __init__(self):
        self.rolled_back = False

    async def rollback(self):
        self.rolled_back = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None


@pytest.fixture
def engine_calls(monkeypatch):
    calls = {"engine": [], "sessions": []}

    def fake_create_async_engine(dsn, **options):
        engine = FakeEngine(create_engine("sqlite:///:memory:"))
        calls["engine"].append((dsn, options, engine))
        return engine

    def fake_sessionmaker(**kwargs):
        calls["factory"] = kwargs

        def factory():
            fake = FakeSession()
            calls["sessions"].append(fake)
            return fake

        return factory

    monkeypatch.setattr(db_session, "create_async_engine", fake_create_async_engine)
    monkeypatch.setattr(db_session, "async_sessionmaker", fake_sessionmaker)
    return calls


def _settings(dsn: str) -> Settings:
    return Settings(database=DatabaseSettings(dsn=dsn))


def test_engine_is_created_once_and_lazily(engine_calls):
    database = Database(_settings("sqlite+aiosqlite:///:memory:"))
    assert engine_calls["engine"] == []

    first = database.session_factory
    second = database.session_factory

    assert first is second
    assert len(engine_calls["engine"]) == 1
    assert engine_calls["factory"]["expire_on_commit"] is False


def test_sqlite_dsn_skips_pool_options(engine_calls):
    Database(_settings("sqlite+aiosqlite:///:memory:")).session_factory

    _, options, _ = engine_calls["engine"][0]
    assert "pool_size" not in options
    assert "max_overflow" not in options
    assert options["pool_pre_ping"] is True


def test_server_dsn_passes_pool_options(engine_calls):
    settings = Settings(
        database=DatabaseSettings(
            dsn="mysql+asyncmy://u:p@db:3306/credits", pool_size=7, max_overflow=3
        )
    )
    Database(settings).session_factory

    dsn, options, _ = engine_calls["engine"][0]
    assert dsn.startswith("mysql+asyncmy")
    assert options["pool_size"] == 7
    assert options["max_overflow"] == 3
    assert options["pool_recycle"] == 3600


@pytest.mark.asyncio
async def test_create_all_builds_tables(engine_calls):
    database = Database(_settings("sqlite+aiosqlite:///:memory:"))

    await database.create_all()

    _, _, engine = engine_calls["engine"][0]
    tables = set(inspect(engine.sync_engine).get_table_names())
    assert {"user_accounts", "usage_log_entries"} <= tables


@pytest.mark.asyncio
async def test_session_rolls_back_on_error(engine_calls):
    database = Database(_settings("sqlite+aiosqlite:///:memory:"))

    with pytest.raises(RuntimeError):
        async with database.session():
            raise RuntimeError("boom")

    assert engine_calls["sessions"][0].rolled_back is True


@pytest.mark.asyncio
async def test_session_leaves_clean_exit_alone(engine_calls):
    database = Database(_settings("sqlite+aiosqlite:///:memory:"))

    async with database.session() as session:
        assert isinstance(session, FakeSession)

    assert engine_calls["sessions"][0].rolled_back is False


@pytest.mark.asyncio
async def test_dispose_resets_engine(engine_calls):
    database = Database(_settings("sqlite+aiosqlite:///:memory:"))
    database.session_factory
    _, _, engine = engine_calls["engine"][0]

    await database.dispose()

    assert engine.disposed is True
    database.session_factory
    assert len(engine_calls["engine"]) == 2


@pytest.mark.asyncio
async def test_dispose_without_engine_is_a_no_op(engine_calls):
    await Database(_settings("sqlite+aiosqlite:///:memory:")).dispose()

    assert engine_calls["engine"] == []
