"""
Rankings computed live from the users and xp_transactions tables.

All-time ranks order by total XP; weekly and monthly ranks order by the XP
credited through ``quest_completion_reward`` transactions in the window.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from questclash.db.models import User, XPTransaction

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

PERIOD_DAYS = {"weekly": 7, "monthly": 30}


async def get_all_time_leaderboard(
    db: AsyncSession,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """Page of users by XP (ties broken by id), with the total user count."""
    total = await db.scalar(select(func.count()).select_from(User))
    result = await db.execute(
        select(User).order_by(User.xp.desc(), User.id.asc()).offset(offset).limit(limit)
    )
    entries = [
        {
            "rank": offset + i + 1,
            "user_id": u.id,
            "username": u.username,
            "avatar": u.avatar,
            "level": u.level,
            "tier": u.tier,
            "xp": u.xp,
            "completed_quests": u.completed_quests,
            "streak": u.streak,
            "badges": list(u.badges or []),
        }
        for i, u in enumerate(result.scalars().all())
    ]
    return entries, total or 0


async def get_period_leaderboard(
    db: AsyncSession,
    period: str,
    limit: int = 10,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Users ranked by quest-completion XP earned in the last 7 or 30 days."""
    if now is None:
        now = datetime.now(timezone.utc)
    since = now - timedelta(days=PERIOD_DAYS[period])

    earned = func.sum(XPTransaction.amount).label("xp_earned")
    result = await db.execute(
        select(User.id, User.username, User.avatar, User.level, User.tier, earned)
        .join(XPTransaction, XPTransaction.user_id == User.id)
        .where(
            XPTransaction.transaction_type == "quest_completion_reward",
            XPTransaction.created_at >= since,
        )
        .group_by(User.id, User.username, User.avatar, User.level, User.tier)
        .having(func.sum(XPTransaction.amount) > 0)
        .order_by(earned.desc(), User.id.asc())
        .limit(limit)
    )
    return [
        {
            "rank": i + 1,
            "user_id": row.id,
            "username": row.username,
            "avatar": row.avatar,
            "level": row.level,
            "tier": row.tier,
            "xp_earned": int(row.xp_earned),
        }
        for i, row in enumerate(result.all())
    ]
