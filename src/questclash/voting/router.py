"""Submission review and voting endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth.dependencies import get_current_user
from questclash.database import get_session
from questclash.db.models import User
from questclash.voting.schemas import SubmissionResponse, VoteRequest, VoteResponse
from questclash.voting.service import (
    cast_vote,
    get_submission,
    list_pending_submissions,
    list_submissions_for_quest,
)
from questclash.workflow import workflow

router = APIRouter(prefix="/api/submissions", tags=["Voting"])


@router.get("/pending", response_model=list[SubmissionResponse])
async def pending_submissions(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submissions awaiting votes, excluding the caller's own."""
    rows = await list_pending_submissions(db, exclude_user_id=user.id, limit=limit, offset=offset)
    return [SubmissionResponse.model_validate(s) for s in rows]


@router.get("/quest/{quest_id}", response_model=list[SubmissionResponse])
async def quest_submissions(quest_id: int, db: AsyncSession = Depends(get_session)):
    return [SubmissionResponse.model_validate(s) for s in await list_submissions_for_quest(db, quest_id)]


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def submission_detail(submission_id: int, db: AsyncSession = Depends(get_session)):
    return SubmissionResponse.model_validate(await get_submission(db, submission_id))


@router.post("/{submission_id}/vote", response_model=VoteResponse)
async def vote(
    submission_id: int,
    body: VoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Approve or reject a submission. One vote per user per submission."""
    async with workflow(db, "cast_vote", user_id=user.id, submission_id=submission_id):
        submission, resolved = await cast_vote(db, submission_id, user, body.approve)
    return VoteResponse(submission=SubmissionResponse.model_validate(submission), resolved=resolved)
