"""XP and reward-point ledger.

Balances move only through single conditional UPDATE statements so two
concurrent requests can never drive a balance negative or lose an
increment. Every movement is mirrored into the append-only
``xp_transactions`` log.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.db.models import User, XPTransaction
from questclash.errors import InsufficientFunds, UserNotFound
from questclash.gamification.level_thresholds import level_columns

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: int, *, refresh: bool = False) -> User:
    """Load a user or raise UserNotFound. ``refresh`` overwrites stale identity-map state."""
    stmt = select(User).where(User.id == user_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    user = (await db.execute(stmt)).scalar_one_or_none()
    if user is None:
        raise UserNotFound
    return user


async def _user_exists(db: AsyncSession, user_id: int) -> bool:
    return (await db.scalar(select(User.id).where(User.id == user_id))) is not None


async def apply_xp_delta(db: AsyncSession, user_id: int, delta: int) -> User:
    """Move a user's XP by ``delta`` and recompute level, xp_to_next_level and tier.

    A delta that would take XP below zero raises InsufficientFunds and
    leaves the row untouched.
    """
    new_xp = User.xp + delta
    result = await db.execute(
        update(User)
        .where(User.id == user_id, new_xp >= 0)
        .values(xp=new_xp, **level_columns(new_xp))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if not await _user_exists(db, user_id):
            raise UserNotFound
        raise InsufficientFunds("XP cannot go below zero")
    return await get_user(db, user_id, refresh=True)


async def apply_reward_points_delta(db: AsyncSession, user_id: int, delta: int) -> User:
    """Credit (positive) or debit (negative) spendable reward points."""
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.reward_points + delta >= 0)
        .values(reward_points=User.reward_points + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if not await _user_exists(db, user_id):
            raise UserNotFound
        raise InsufficientFunds
    return await get_user(db, user_id, refresh=True)


async def record_transaction(
    db: AsyncSession,
    user_id: int,
    username: str,
    transaction_type: str,
    amount: int,
    quest_id: int | None = None,
    description: str | None = None,
) -> XPTransaction | None:
    """Append a ledger row inside a savepoint.

    A failed insert rolls back only the savepoint and is logged; the
    caller's balance change goes ahead. Returns None in that case.
    """
    entry = XPTransaction(
        user_id=user_id,
        username=username,
        transaction_type=transaction_type,
        amount=amount,
        quest_id=quest_id,
        description=description,
    )
    try:
        async with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.warning(
            "Failed to record %s transaction for user %s (amount=%s)",
            transaction_type,
            user_id,
            amount,
            exc_info=True,
        )
        return None
    return entry


async def compute_rank(db: AsyncSession, user_id: int) -> int:
    """Store and return 1 + the number of users with strictly more XP."""
    user = await get_user(db, user_id)
    higher = await db.scalar(select(func.count()).select_from(User).where(User.xp > user.xp))
    user.rank = (higher or 0) + 1
    await db.flush()
    return user.rank


async def get_transaction_history(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[XPTransaction], int]:
    """Newest-first page of a user's ledger rows, with the total count."""
    total = await db.scalar(
        select(func.count()).select_from(XPTransaction).where(XPTransaction.user_id == user_id)
    )
    result = await db.execute(
        select(XPTransaction)
        .where(XPTransaction.user_id == user_id)
        .order_by(XPTransaction.created_at.desc(), XPTransaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total or 0


_COUNTERS = frozenset({"total_quests", "completed_quests", "votes_cast"})


async def increment_user_counter(db: AsyncSession, user_id: int, field: str, by: int = 1) -> int:
    """Atomically bump a progression counter and return its new value."""
    if field not in _COUNTERS:
        msg = f"Not a user counter: {field}"
        raise ValueError(msg)
    column = getattr(User, field)
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values({column: column + by})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFound
    user = await get_user(db, user_id, refresh=True)
    return getattr(user, field)
