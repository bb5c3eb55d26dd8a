"""Quest router: all /api/quests/* endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth.dependencies import get_current_user
from questclash.database import get_session
from questclash.db.models import User
from questclash.quests.schemas import (
    ActiveQuestResponse,
    Category,
    CostPreviewResponse,
    Difficulty,
    JoinResponse,
    ParticipantResponse,
    QuestCreateRequest,
    QuestResponse,
    QuestStatus,
    QuestUpdateRequest,
    SubmitEvidenceRequest,
    Tier,
)
from questclash.quests.service import (
    compute_creator_cost,
    compute_join_cost,
    create_quest,
    delete_quest,
    get_participation_status,
    get_quest,
    join_quest,
    list_active_quests_for_user,
    list_quests,
    list_quests_by_creator,
    submit_evidence,
    update_quest,
)
from questclash.voting.schemas import SubmissionResponse
from questclash.workflow import workflow

router = APIRouter(prefix="/api/quests", tags=["Quests"])


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@router.get("", response_model=list[QuestResponse])
async def browse_quests(
    category: Category | None = None,
    difficulty: Difficulty | None = None,
    tier: Tier | None = None,
    status: QuestStatus | None = None,
    search: str | None = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    """Browse quests, newest first, with optional filters and text search."""
    quests = await list_quests(
        db,
        category=category,
        difficulty=difficulty,
        tier=tier,
        search=search,
        status=status,
        limit=limit,
        offset=offset,
    )
    return [QuestResponse.model_validate(q) for q in quests]


@router.get("/me/active", response_model=list[ActiveQuestResponse])
async def my_active_quests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Quests the caller has joined and not yet finished."""
    rows = await list_active_quests_for_user(db, user.id)
    return [
        ActiveQuestResponse(
            participation=ParticipantResponse.model_validate(p),
            quest=QuestResponse.model_validate(p.quest),
        )
        for p in rows
    ]


@router.get("/me/cost", response_model=CostPreviewResponse)
async def my_creation_cost(user: User = Depends(get_current_user)):
    """What creating a quest would cost the caller right now."""
    creator_cost = compute_creator_cost(user.reward_points)
    return CostPreviewResponse(
        reward_points=user.reward_points,
        creator_cost=creator_cost,
        join_cost=compute_join_cost(creator_cost),
    )


@router.get("/user/{username}", response_model=list[QuestResponse])
async def quests_by_creator(username: str, db: AsyncSession = Depends(get_session)):
    return [QuestResponse.model_validate(q) for q in await list_quests_by_creator(db, username)]


@router.get("/{quest_id}", response_model=QuestResponse)
async def quest_detail(quest_id: int, db: AsyncSession = Depends(get_session)):
    return QuestResponse.model_validate(await get_quest(db, quest_id))


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------


@router.post("", response_model=QuestResponse, status_code=201)
async def create(
    body: QuestCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a quest; the creator pays the creation cost."""
    async with workflow(db, "create_quest", user_id=user.id):
        quest = await create_quest(db, user, body)
    return QuestResponse.model_validate(quest)


@router.put("/{quest_id}", response_model=QuestResponse)
async def update(
    quest_id: int,
    body: QuestUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    async with workflow(db, "update_quest", user_id=user.id, quest_id=quest_id):
        quest = await update_quest(db, user, quest_id, body)
    return QuestResponse.model_validate(quest)


@router.delete("/{quest_id}")
async def delete(
    quest_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Delete a quest nobody has joined yet, refunding the creation cost."""
    async with workflow(db, "delete_quest", user_id=user.id, quest_id=quest_id):
        refunded = await delete_quest(db, user, quest_id)
    return {"ok": True, "message": "Quest deleted", "refunded": refunded}


# ---------------------------------------------------------------------------
# Participation
# ---------------------------------------------------------------------------


@router.post("/{quest_id}/join", response_model=JoinResponse)
async def join(
    quest_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Join a quest, paying its join cost in reward points."""
    async with workflow(db, "join_quest", user_id=user.id, quest_id=quest_id):
        participant = await join_quest(db, user, quest_id)
        quest = await get_quest(db, quest_id)
    return JoinResponse(
        participation=ParticipantResponse.model_validate(participant),
        participants=quest.participants,
        reward_points=user.reward_points,
    )


@router.post("/{quest_id}/submit", response_model=SubmissionResponse, status_code=201)
async def submit(
    quest_id: int,
    body: SubmitEvidenceRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submit evidence for community review."""
    async with workflow(db, "submit_evidence", user_id=user.id, quest_id=quest_id):
        submission = await submit_evidence(db, user, quest_id, body.evidence)
    return SubmissionResponse.model_validate(submission)


@router.get("/{quest_id}/participation", response_model=ParticipantResponse | None)
async def participation(
    quest_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's participation in a quest, or null if never joined."""
    participant = await get_participation_status(db, user.id, quest_id)
    return ParticipantResponse.model_validate(participant) if participant else None
