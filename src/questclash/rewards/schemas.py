"""Response schemas for reward endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class RewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    amount: float
    quest_id: int | None = None
    quest_title: str | None = None
    created_at: datetime | None = None
    claimed_at: datetime | None = None


class ClaimResponse(BaseModel):
    ok: bool = True
    reward: RewardResponse
    usdc_balance: float
    xp: int
