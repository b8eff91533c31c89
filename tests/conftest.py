"""Shared test fixtures.

The suite runs against in-memory SQLite (aiosqlite) built from the ORM
metadata, so no database or Redis server is needed. Redis is never
initialized, which makes the rate limiter pass requests through.

All sessions share one connection (StaticPool): a test must commit or close
its own session before driving the app over HTTP.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from typing import Any

os.environ["QH_JWT_SECRET"] = "test-jwt-secret-0123456789-abcdefghijklmnop"
os.environ["QH_LOG_FORMAT"] = "console"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from questhunt.auth.jwt import create_access_token
from questhunt.config import get_settings
from questhunt.db.base import Base
from questhunt.db.models import Hunt, Location, Quest
from questhunt.dependencies import get_db, get_store_client, get_sync_guard
from questhunt.locations.store_client import StoreClient
from questhunt.locations.sync_guard import SyncGuard
from questhunt.main import create_app

get_settings.cache_clear()

USER_1 = "11111111-1111-1111-1111-111111111111"
USER_2 = "22222222-2222-2222-2222-222222222222"
USER_3 = "33333333-3333-3333-3333-333333333333"


def auth_headers(user_id: str = USER_1) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, f'{user_id[:4]}@example.com')}"}


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's implicit transactions break SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def sync_guard() -> SyncGuard:
    return SyncGuard(ttl_seconds=300)


class FakeStoreApi:
    """Programmable stand-in for the thrift store API."""

    def __init__(self) -> None:
        self.stores: Any = []
        self.status_code = 200
        self.calls = 0
        self.handler: Callable[[httpx.Request], Any] | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.handler is not None:
            return await self.handler(request)
        return httpx.Response(self.status_code, json=self.stores)


@pytest.fixture
def store_api() -> FakeStoreApi:
    return FakeStoreApi()


@pytest_asyncio.fixture
async def store_client(store_api: FakeStoreApi) -> AsyncGenerator[StoreClient, None]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(store_api))
    yield StoreClient("http://stores.test", timeout=2.0, http=http)
    await http.aclose()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    sync_guard: SyncGuard,
    store_client: StoreClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with test DB, guard and store API."""
    app = create_app()

    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _get_store_client() -> AsyncGenerator[StoreClient, None]:
        yield store_client

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_sync_guard] = lambda: sync_guard
    app.dependency_overrides[get_store_client] = _get_store_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def seed_quest(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    points: int | None = 10,
    hunt: dict[str, Any] | None = None,
    name: str = "Harbor Lookout",
) -> dict[str, int | None]:
    """Insert a location, an optional hunt and a quest; return their ids."""
    async with session_factory() as session:
        location = Location(name=f"{name} Spot", latitude=49.2827, longitude=-123.1207, radius=50)
        session.add(location)
        hunt_row = None
        if hunt is not None:
            hunt_row = Hunt(**hunt)
            session.add(hunt_row)
        await session.flush()
        quest = Quest(
            name=name,
            location_id=location.id,
            created_by=USER_3,
            points_achievable=points,
            hunt_id=hunt_row.id if hunt_row else None,
        )
        session.add(quest)
        await session.commit()
        return {
            "location_id": location.id,
            "quest_id": quest.id,
            "hunt_id": hunt_row.id if hunt_row else None,
        }
