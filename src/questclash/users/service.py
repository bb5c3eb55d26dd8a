"""User profile business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from questclash.db.models import Quest, QuestParticipant, Submission, User
from questclash.errors import Conflict, UserNotFound
from questclash.gamification.badge_service import BADGE_CATALOG

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def update_profile(
    db: AsyncSession,
    user: User,
    username: str | None = None,
    avatar: str | None = None,
) -> User:
    """
    Update username and/or avatar.

    Raises:
        Conflict: If the username is taken (case-insensitive).
    """
    renamed = username is not None and username != user.username
    if renamed:
        result = await db.execute(
            select(User.id)
            .where(func.lower(User.username) == username.lower())
            .where(User.id != user.id)
        )
        if result.first() is not None:
            raise Conflict("Username already taken")
        user.username = username

    if avatar is not None:
        user.avatar = avatar or None

    try:
        await db.flush()
    except IntegrityError as e:
        raise Conflict("Username already taken") from e

    if renamed:
        await _sync_display_name(db, user)

    logger.info("profile_updated", user_id=user.id)
    return user


async def get_public_profile(db: AsyncSession, user_id: int) -> User:
    """Get another user's profile by id."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFound
    return user


def earned_badges(user: User) -> list[dict[str, str]]:
    """Catalog entries for the badges a user holds, in catalog order."""
    held = set(user.badges or [])
    return [
        {"slug": slug, **info}
        for slug, info in BADGE_CATALOG.items()
        if slug in held
    ]


async def _sync_display_name(db: AsyncSession, user: User) -> None:
    """Carry a rename onto the quest, participation and submission rows that show it."""
    for model, owner, name in (
        (Quest, Quest.created_by_id, Quest.created_by),
        (QuestParticipant, QuestParticipant.user_id, QuestParticipant.username),
        (Submission, Submission.user_id, Submission.username),
    ):
        await db.execute(
            update(model)
            .where(owner == user.id)
            .values({name: user.username})
            .execution_options(synchronize_session=False)
        )
