"""
Wallet sign-in business logic.

Handles nonce issue/consumption and first-login user creation.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from questclash.auth.wallet import normalize_address
from questclash.config import get_settings
from questclash.db.models import User
from questclash.errors import Conflict
from questclash.gamification.level_thresholds import compute_level
from questclash.gamification.streak_service import update_streak
from questclash.gamification.xp_service import apply_reward_points_delta, compute_rank, record_transaction

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

_NONCE_PREFIX = "auth:nonce:"


# ---------------------------------------------------------------------------
# Nonces
# ---------------------------------------------------------------------------


async def issue_nonce(redis: Redis) -> str:
    """Create a 32-hex-char nonce valid for ``nonce_ttl_seconds``."""
    nonce = secrets.token_hex(16)
    await redis.set(f"{_NONCE_PREFIX}{nonce}", "1", ex=get_settings().nonce_ttl_seconds)
    return nonce


async def consume_nonce(redis: Redis, nonce: str) -> bool:
    """Atomically delete a nonce. True only for the first caller while it is live."""
    return bool(await redis.delete(f"{_NONCE_PREFIX}{nonce}"))


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_address(db: AsyncSession, wallet_address: str) -> User | None:
    result = await db.execute(
        select(User).where(User.wallet_address == normalize_address(wallet_address))
    )
    return result.scalar_one_or_none()


async def _available_username(db: AsyncSession, address: str) -> str:
    """``base-`` plus the shortest address prefix that is not taken yet."""
    hex_part = address[2:]
    for length in (4, 8, 12, len(hex_part)):
        candidate = f"base-{hex_part[:length]}"
        taken = await db.scalar(select(User.id).where(User.username == candidate))
        if taken is None:
            return candidate
    return f"base-{hex_part}"


# ---------------------------------------------------------------------------
# Wallet login
# ---------------------------------------------------------------------------


async def _insert_user(db: AsyncSession, address: str, username: str) -> User | None:
    """Insert a fresh user inside a savepoint. None if a UNIQUE constraint fired."""
    progress = compute_level(0)
    user = User(
        wallet_address=address,
        username=username,
        avatar=f"https://api.dicebear.com/7.x/avataaars/svg?seed={address}",
        xp=0,
        level=progress["level"],
        xp_to_next_level=progress["xp_to_next_level"],
        tier=progress["tier"],
        reward_points=0,
        badges=[],
    )
    try:
        async with db.begin_nested():
            db.add(user)
            await db.flush()
    except IntegrityError:
        logger.warning("user_insert_conflict", address=address, username=username)
        return None
    return user


async def get_or_create_user(db: AsyncSession, wallet_address: str) -> tuple[User, bool]:
    """
    Get an existing user or create one with the signup bonus.

    A concurrent first login for the same wallet loses the insert race and
    loads the winner's row instead.

    Returns:
        Tuple of (user, created).
    """
    address = normalize_address(wallet_address)
    user = await get_user_by_address(db, address)
    if user is not None:
        return user, False

    user = await _insert_user(db, address, await _available_username(db, address))
    if user is None:
        existing = await get_user_by_address(db, address)
        if existing is not None:
            return existing, False
        # Short username claimed concurrently by another wallet
        user = await _insert_user(db, address, f"base-{address[2:]}")
        if user is None:
            raise Conflict("Could not create user for this wallet")

    bonus = get_settings().signup_bonus_points
    if bonus > 0:
        user = await apply_reward_points_delta(db, user.id, bonus)
        await record_transaction(
            db, user.id, user.username, "signup_bonus", bonus,
            description="Welcome bonus",
        )

    logger.info("user_created", user_id=user.id, address=address)
    return user, True


async def login_wallet_user(db: AsyncSession, wallet_address: str) -> tuple[User, bool]:
    """Create-or-load the user, then refresh streak, last_login and rank."""
    user, created = await get_or_create_user(db, wallet_address)
    await update_streak(db, user)
    await compute_rank(db, user.id)
    return user, created
