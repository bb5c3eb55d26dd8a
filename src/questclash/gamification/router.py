"""Badge catalog and level calculator endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from questclash.gamification.badge_service import BADGE_CATALOG
from questclash.gamification.level_thresholds import compute_level
from questclash.gamification.schemas import AllBadgesResponse, BadgeResponse, LevelResponse

router = APIRouter(prefix="/api", tags=["Gamification"])


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges():
    """All badge definitions."""
    return AllBadgesResponse(
        badges=[BadgeResponse(slug=slug, **info) for slug, info in BADGE_CATALOG.items()]
    )


@router.get("/levels", response_model=LevelResponse)
async def level_for_xp(xp: int = Query(..., ge=0)):
    """Level, remaining XP and tier for a given XP total."""
    return LevelResponse(xp=xp, **compute_level(xp))
