"""Badge catalog and idempotent awarding."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from questclash.db.models import User

logger = logging.getLogger(__name__)

BADGE_CATALOG: dict[str, dict[str, str]] = {
    "quest_creator": {
        "name": "Quest Creator",
        "description": "Created your first quest",
    },
    "streak_master": {
        "name": "Streak Master",
        "description": "Logged in 7 days in a row",
    },
    "community_helper": {
        "name": "Community Helper",
        "description": "Cast 50 votes on community submissions",
    },
    "first_completion": {
        "name": "First Completion",
        "description": "Had a quest submission approved",
    },
}

STREAK_MASTER_DAYS = 7
COMMUNITY_HELPER_VOTES = 50


async def award_badge(db: AsyncSession, user: User, slug: str) -> bool:
    """Add ``slug`` to the user's badges. Returns False if already held."""
    if slug not in BADGE_CATALOG:
        msg = f"Unknown badge: {slug}"
        raise ValueError(msg)
    current = list(user.badges or [])
    if slug in current:
        return False
    # Reassign so the JSON column is flagged dirty
    user.badges = [*current, slug]
    await db.flush()
    logger.info("Awarded badge %s to user %s", slug, user.id)
    return True
