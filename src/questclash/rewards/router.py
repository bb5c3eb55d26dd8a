"""Reward endpoints: pending, claim, history."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth.dependencies import get_current_user
from questclash.database import get_session
from questclash.db.models import User
from questclash.rewards.schemas import ClaimResponse, RewardResponse
from questclash.rewards.service import claim_reward, list_pending_rewards, list_reward_history
from questclash.workflow import workflow

router = APIRouter(prefix="/api/rewards", tags=["Rewards"])


@router.get("/pending", response_model=list[RewardResponse])
async def pending_rewards(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return [RewardResponse.model_validate(r) for r in await list_pending_rewards(db, user.id)]


@router.post("/claim/{reward_id}", response_model=ClaimResponse)
async def claim(
    reward_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Claim a pending reward into the caller's balance."""
    async with workflow(db, "claim_reward", user_id=user.id, reward_id=reward_id):
        reward, user = await claim_reward(db, user.id, reward_id)
    return ClaimResponse(
        reward=RewardResponse.model_validate(reward),
        usdc_balance=float(user.usdc_balance),
        xp=user.xp,
    )


@router.get("/history", response_model=list[RewardResponse])
async def reward_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return [RewardResponse.model_validate(r) for r in await list_reward_history(db, user.id)]
