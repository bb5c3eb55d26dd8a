"""User router: all /api/users/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth.dependencies import get_current_user
from questclash.database import get_session
from questclash.db.models import User
from questclash.gamification.badge_service import BADGE_CATALOG
from questclash.gamification.schemas import BadgeResponse, UserBadgesResponse
from questclash.gamification.xp_service import compute_rank, get_transaction_history
from questclash.users.schemas import (
    ProfileUpdateRequest,
    PublicUserResponse,
    RankResponse,
    TransactionHistoryResponse,
    TransactionResponse,
    UserResponse,
)
from questclash.users.service import earned_badges, get_public_profile, update_profile
from questclash.workflow import workflow

router = APIRouter(prefix="/api/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    """Get own full profile."""
    return UserResponse.model_validate(user)


@router.put("/me", response_model=UserResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Update username and/or avatar."""
    async with workflow(db, "update_profile", user_id=user.id):
        user = await update_profile(db, user, username=body.username, avatar=body.avatar)
    return UserResponse.model_validate(user)


@router.get("/me/transactions", response_model=TransactionHistoryResponse)
async def my_transactions(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TransactionHistoryResponse:
    """Paginated XP / reward-point ledger, newest first."""
    rows, total = await get_transaction_history(db, user.id, page=page, per_page=per_page)
    return TransactionHistoryResponse(
        transactions=[TransactionResponse.model_validate(r) for r in rows],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/me/badges", response_model=UserBadgesResponse)
async def my_badges(user: User = Depends(get_current_user)) -> UserBadgesResponse:
    earned = [BadgeResponse(**b) for b in earned_badges(user)]
    return UserBadgesResponse(
        earned=earned,
        total_available=len(BADGE_CATALOG),
        total_earned=len(earned),
    )


@router.post("/me/rank", response_model=RankResponse)
async def refresh_rank(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> RankResponse:
    """Recompute and store the caller's rank."""
    async with workflow(db, "compute_rank", user_id=user.id):
        rank = await compute_rank(db, user.id)
    return RankResponse(rank=rank, xp=user.xp)


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_session),
) -> PublicUserResponse:
    """Public profile of any user."""
    return PublicUserResponse.model_validate(await get_public_profile(db, user_id))
