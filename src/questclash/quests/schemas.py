"""Request/response schemas for quest endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Category = Literal["fitness", "learning", "social", "creative", "wellness"]
Difficulty = Literal["easy", "medium", "hard", "extreme"]
Tier = Literal["bronze", "silver", "gold", "platinum"]
VerificationMethod = Literal["photo", "video", "gps", "community"]
QuestStatus = Literal["active", "completed", "pending_validation"]


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class _QuestFields(BaseModel):
    """Normalisation shared by create and update payloads."""

    @field_validator("title", "description", "duration", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("requirements", check_fields=False)
    @classmethod
    def clean_requirements(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [item.strip() for item in v if item.strip()]

    @field_validator("image", "voucher_reward", mode="before", check_fields=False)
    @classmethod
    def blank_to_none(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("usdc_reward", check_fields=False)
    @classmethod
    def zero_to_none(cls, v: Decimal | None) -> Decimal | None:
        return None if v is None or v == 0 else v

    @field_validator("start_date", "end_date", check_fields=False)
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return _utc(v) if v is not None else v


class QuestCreateRequest(_QuestFields):
    """Quest definition submitted by a creator."""

    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=5000)
    category: Category
    difficulty: Difficulty
    tier: Tier
    duration: str = Field(..., min_length=1, max_length=64)
    requirements: list[str] = Field(default_factory=list, max_length=50)
    verification_method: VerificationMethod
    image: str | None = Field(None, max_length=2048)
    xp_reward: int = Field(..., ge=0, le=1_000_000)
    usdc_reward: Decimal | None = Field(None, ge=0, max_digits=14, decimal_places=2)
    voucher_reward: str | None = Field(None, max_length=256)
    max_participants: int | None = Field(None, gt=0)
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def check_dates(self) -> QuestCreateRequest:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class QuestUpdateRequest(_QuestFields):
    """Partial update; only fields present in the body are changed."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, min_length=10, max_length=5000)
    category: Category | None = None
    difficulty: Difficulty | None = None
    tier: Tier | None = None
    duration: str | None = Field(None, min_length=1, max_length=64)
    requirements: list[str] | None = Field(None, max_length=50)
    verification_method: VerificationMethod | None = None
    image: str | None = Field(None, max_length=2048)
    voucher_reward: str | None = Field(None, max_length=256)
    max_participants: int | None = Field(None, gt=0)
    status: QuestStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class QuestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: str
    difficulty: str
    tier: str
    duration: str
    requirements: list[str]
    verification_method: str
    image: str | None = None
    xp_reward: int
    usdc_reward: float | None = None
    voucher_reward: str | None = None
    creator_cost: int
    join_cost: int
    status: str
    participants: int
    max_participants: int | None = None
    created_by_id: int | None = None
    created_by: str
    start_date: datetime
    end_date: datetime
    created_at: datetime | None = None


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quest_id: int
    user_id: int
    username: str
    status: str
    evidence_submitted: bool
    joined_at: datetime | None = None


class ActiveQuestResponse(BaseModel):
    participation: ParticipantResponse
    quest: QuestResponse


class SubmitEvidenceRequest(BaseModel):
    evidence: str = Field(..., max_length=10_000)


class JoinResponse(BaseModel):
    ok: bool = True
    participation: ParticipantResponse
    participants: int
    reward_points: int


class CostPreviewResponse(BaseModel):
    reward_points: int
    creator_cost: int
    join_cost: int
