"""Request/response schemas for submission and voting endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quest_id: int
    user_id: int
    username: str
    evidence: str
    votes_for: int
    votes_against: int
    status: str
    submitted_at: datetime | None = None
    resolved_at: datetime | None = None


class VoteRequest(BaseModel):
    approve: bool


class VoteResponse(BaseModel):
    ok: bool = True
    submission: SubmissionResponse
    resolved: bool
