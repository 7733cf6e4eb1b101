"""Fixtures for SQL store and API integration tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from budget_ledger.api.app import create_app
from budget_ledger.config import Settings
from budget_ledger.database import create_schema, get_engine, get_session_factory
from budget_ledger.store.sql import SqlDocumentStore
from tests.conftest import seed_budget


@pytest.fixture
def db_file(tmp_path) -> str:
    return str(tmp_path / "ledger.db")


@pytest.fixture
async def engine(db_file: str) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the document table created."""
    engine = get_engine(f"sqlite+aiosqlite:///{db_file}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(engine: AsyncEngine) -> SqlDocumentStore:
    return SqlDocumentStore(get_session_factory(engine), retry_limit=5)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        store_backend="memory",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        optimistic_retry_limit=5,
    )


@pytest.fixture
async def client(settings, seeded_store, identity_provider, clock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app over the seeded in-memory store."""
    app = create_app(settings, store=seeded_store, identity_provider=identity_provider, clock=clock)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def sql_client(settings, sql_store, identity_provider, clock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app over the SQL store."""
    await seed_budget(sql_store)
    app = create_app(settings, store=sql_store, identity_provider=identity_provider, clock=clock)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
