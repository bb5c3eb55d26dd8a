"""
Reward claims.

XP rewards are credited at approval time and stored already claimed; USDC
rewards wait here until the user claims them. Claiming is guarded by
``claimed_at IS NULL`` in a single UPDATE, so a reward pays out once.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from questclash.db.models import Reward, User
from questclash.errors import RewardAlreadyClaimed, RewardNotFound
from questclash.gamification.xp_service import apply_xp_delta, get_user

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def list_pending_rewards(db: AsyncSession, user_id: int) -> list[Reward]:
    result = await db.execute(
        select(Reward)
        .where(Reward.user_id == user_id, Reward.claimed_at.is_(None))
        .order_by(Reward.created_at.asc(), Reward.id.asc())
    )
    return list(result.scalars().all())


async def list_reward_history(db: AsyncSession, user_id: int) -> list[Reward]:
    """Claimed rewards, most recent claim first."""
    result = await db.execute(
        select(Reward)
        .where(Reward.user_id == user_id, Reward.claimed_at.is_not(None))
        .order_by(Reward.claimed_at.desc(), Reward.id.desc())
    )
    return list(result.scalars().all())


async def claim_reward(db: AsyncSession, user_id: int, reward_id: int) -> tuple[Reward, User]:
    """
    Claim a pending reward and credit it to the user.

    Raises:
        RewardNotFound: No such reward for this user.
        RewardAlreadyClaimed: The reward was claimed before.
    """
    result = await db.execute(
        update(Reward)
        .where(Reward.id == reward_id, Reward.user_id == user_id, Reward.claimed_at.is_(None))
        .values(claimed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    reward = (
        await db.execute(
            select(Reward)
            .where(Reward.id == reward_id, Reward.user_id == user_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if reward is None:
        raise RewardNotFound
    if result.rowcount == 0:
        raise RewardAlreadyClaimed

    if reward.type == "usdc":
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(usdc_balance=User.usdc_balance + Decimal(reward.amount))
            .execution_options(synchronize_session=False)
        )
        user = await get_user(db, user_id, refresh=True)
    else:
        user = await apply_xp_delta(db, user_id, int(reward.amount))

    logger.info("User %s claimed %s reward %s (amount=%s)", user_id, reward.type, reward.id, reward.amount)
    return reward, user
