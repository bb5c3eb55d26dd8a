"""Leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.database import get_session
from questclash.leaderboard.schemas import (
    LeaderboardEntry,
    LeaderboardResponse,
    PeriodLeaderboardEntry,
    PeriodLeaderboardResponse,
)
from questclash.leaderboard.service import get_all_time_leaderboard, get_period_leaderboard

router = APIRouter(prefix="/api/leaderboard", tags=["Leaderboard"])


@router.get("", response_model=LeaderboardResponse)
async def all_time(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    """All-time ranking by XP."""
    entries, total = await get_all_time_leaderboard(db, limit=limit, offset=offset)
    return LeaderboardResponse(
        period="all_time",
        entries=[LeaderboardEntry(**e) for e in entries],
        total=total,
    )


@router.get("/weekly", response_model=PeriodLeaderboardResponse)
async def weekly(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    entries = await get_period_leaderboard(db, "weekly", limit=limit)
    return PeriodLeaderboardResponse(period="weekly", entries=[PeriodLeaderboardEntry(**e) for e in entries])


@router.get("/monthly", response_model=PeriodLeaderboardResponse)
async def monthly(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    entries = await get_period_leaderboard(db, "monthly", limit=limit)
    return PeriodLeaderboardResponse(period="monthly", entries=[PeriodLeaderboardEntry(**e) for e in entries])
