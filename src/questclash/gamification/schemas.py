"""Pydantic response models for badge and level endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class BadgeResponse(BaseModel):
    slug: str
    name: str
    description: str


class AllBadgesResponse(BaseModel):
    badges: list[BadgeResponse]


class UserBadgesResponse(BaseModel):
    earned: list[BadgeResponse]
    total_available: int
    total_earned: int


class LevelResponse(BaseModel):
    xp: int
    level: int
    xp_to_next_level: int
    tier: str
