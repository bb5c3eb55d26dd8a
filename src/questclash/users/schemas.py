"""Request/response schemas for user endpoints."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class UserResponse(BaseModel):
    """Own profile, including economy fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    wallet_address: str
    username: str
    avatar: str | None = None
    xp: int
    level: int
    xp_to_next_level: int
    tier: str
    streak: int
    rank: int
    total_quests: int
    completed_quests: int
    votes_cast: int
    badges: list[str] = []
    reward_points: int
    usdc_balance: float
    credits: int
    created_at: datetime | None = None
    last_login: datetime | None = None


class PublicUserResponse(BaseModel):
    """Profile as seen by other users."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    avatar: str | None = None
    xp: int
    level: int
    tier: str
    streak: int
    rank: int
    completed_quests: int
    badges: list[str] = []


class ProfileUpdateRequest(BaseModel):
    username: str | None = Field(None, min_length=3, max_length=32)
    avatar: str | None = Field(None, max_length=2048)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not _USERNAME_RE.match(v):
            msg = "Username may only contain letters, digits, '_' and '-'"
            raise ValueError(msg)
        return v


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_type: str
    amount: int
    quest_id: int | None = None
    description: str | None = None
    created_at: datetime


class TransactionHistoryResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    page: int
    per_page: int


class RankResponse(BaseModel):
    rank: int
    xp: int

