"""Shared test fixtures.

Tests run against an in-memory SQLite database (aiosqlite) built from the ORM
metadata, and an in-process fakeredis server injected through FastAPI
dependency overrides. No external services are needed.
"""

from __future__ import annotations

import itertools
from collections.abc import AsyncGenerator
from typing import Any

import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from questclash.auth.jwt import create_access_token
from questclash.database import close_db, get_engine, get_session_factory, init_db
from questclash.db.base import Base
from questclash.db.models import User
from questclash.gamification.level_thresholds import compute_level
from questclash.main import create_app
from questclash.redis_client import get_redis

TEST_DATABASE_URL = "sqlite+aiosqlite://"

_wallet_seq = itertools.count(1)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory schema per test."""
    await init_db(TEST_DATABASE_URL)
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await close_db()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """A direct session for service-level tests."""
    async with get_session_factory()() as session:
        yield session


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def fake_redis() -> AsyncGenerator[FakeAsyncRedis, None]:
    """In-process Redis with its own server, decoding responses like the app client."""
    redis = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield redis
    await redis.aclose()


@pytest_asyncio.fixture
async def client(db_engine: AsyncEngine, fake_redis: FakeAsyncRedis) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the ASGI app with the test database and Redis stand-in."""
    app = create_app()
    app.dependency_overrides[get_redis] = lambda: fake_redis
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def wallet(n: int) -> str:
    """Deterministic, valid, lower-case wallet address."""
    return f"0x{n:040x}"


async def make_user(
    username: str,
    *,
    wallet_n: int | None = None,
    reward_points: int = 1000,
    xp: int = 0,
    session: AsyncSession | None = None,
) -> User:
    """Insert a user directly (no signup bonus, no ledger row)."""
    progress = compute_level(xp)
    user = User(
        wallet_address=wallet(wallet_n if wallet_n is not None else next(_wallet_seq)),
        username=username,
        xp=xp,
        level=progress["level"],
        xp_to_next_level=progress["xp_to_next_level"],
        tier=progress["tier"],
        reward_points=reward_points,
        badges=[],
    )
    if session is not None:
        session.add(user)
        await session.flush()
        return user
    async with get_session_factory()() as db:
        db.add(user)
        await db.commit()
    return user


async def load_user(user_id: int) -> User:
    """Read a user's current row through a fresh session."""
    async with get_session_factory()() as db:
        return (await db.execute(select(User).where(User.id == user_id))).scalar_one()


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.wallet_address)}"}


def quest_payload(**overrides: Any) -> dict[str, Any]:  # noqa: ANN401
    payload: dict[str, Any] = {
        "title": "10K Morning Run Challenge",
        "description": "Complete a 10km run before 9 AM and submit GPS proof",
        "category": "fitness",
        "difficulty": "medium",
        "tier": "silver",
        "duration": "1 day",
        "requirements": ["GPS tracking enabled", "Complete before 9 AM"],
        "verification_method": "gps",
        "image": None,
        "xp_reward": 500,
        "usdc_reward": "5.00",
        "voucher_reward": None,
        "max_participants": None,
        "start_date": "2026-10-18T08:00:00Z",
        "end_date": "2026-10-19T08:00:00Z",
    }
    payload.update(overrides)
    return payload
