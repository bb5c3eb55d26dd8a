"""Response schemas for leaderboard endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    avatar: str | None = None
    level: int
    tier: str
    xp: int
    completed_quests: int
    streak: int
    badges: list[str] = []


class PeriodLeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    avatar: str | None = None
    level: int
    tier: str
    xp_earned: int


class LeaderboardResponse(BaseModel):
    period: str
    entries: list[LeaderboardEntry]
    total: int


class PeriodLeaderboardResponse(BaseModel):
    period: str
    entries: list[PeriodLeaderboardEntry]
