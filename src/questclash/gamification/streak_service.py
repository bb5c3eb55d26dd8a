"""Daily login streaks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from questclash.db.models import User
from questclash.gamification.badge_service import STREAK_MASTER_DAYS, award_badge

logger = logging.getLogger(__name__)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def next_streak(current: int, last_login: datetime | None, now: datetime) -> int:
    """Streak value after a login at ``now``, comparing UTC calendar days."""
    if last_login is None:
        return 1
    days = (as_utc(now).date() - as_utc(last_login).date()).days
    if days == 0:
        return current
    if days == 1:
        return current + 1
    return 1


async def update_streak(db: AsyncSession, user: User, now: datetime | None = None) -> int:
    """Advance or reset the user's streak and stamp ``last_login``."""
    if now is None:
        now = datetime.now(timezone.utc)
    user.streak = next_streak(user.streak, user.last_login, now)
    user.last_login = now
    await db.flush()

    if user.streak >= STREAK_MASTER_DAYS:
        await award_badge(db, user, "streak_master")
    return user.streak
