"""
Quest lifecycle: creation, joining, evidence submission and management.

Every mutating function here assumes it runs inside ``workflow`` so that
its steps (insert, debit, ledger row, counter update) commit or roll back
together. Each step that could race is a single conditional statement.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from questclash.config import get_settings
from questclash.db.models import Quest, QuestParticipant, Submission, User
from questclash.errors import (
    AlreadyJoined,
    AlreadySubmitted,
    Conflict,
    Forbidden,
    InsufficientFunds,
    NotJoined,
    QuestFull,
    QuestNotFound,
    ValidationError,
)
from questclash.gamification.badge_service import award_badge
from questclash.gamification.streak_service import as_utc
from questclash.gamification.xp_service import (
    apply_reward_points_delta,
    increment_user_counter,
    record_transaction,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from questclash.quests.schemas import QuestCreateRequest, QuestUpdateRequest

logger = structlog.get_logger()

ACTIVE_PARTICIPANT_STATUSES = ("joined", "submitted")


# ---------------------------------------------------------------------------
# Cost policy
# ---------------------------------------------------------------------------


def compute_creator_cost(reward_points: int) -> int:
    """Creating a quest costs a fixed share (half by default) of the creator's points."""
    ratio = Decimal(str(get_settings().creator_cost_ratio))
    return math.floor(Decimal(max(reward_points, 0)) * ratio)


def compute_join_cost(creator_cost: int) -> int:
    """Joining costs a share (a tenth by default) of the creation cost, never less than 1."""
    settings = get_settings()
    ratio = Decimal(str(settings.join_cost_ratio))
    return max(settings.min_join_cost, math.floor(Decimal(creator_cost) * ratio))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_quest(db: AsyncSession, quest_id: int, *, refresh: bool = False) -> Quest:
    """Fetch a quest or raise QuestNotFound."""
    stmt = select(Quest).where(Quest.id == quest_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    quest = (await db.execute(stmt)).scalar_one_or_none()
    if quest is None:
        raise QuestNotFound
    return quest


async def get_participation_status(
    db: AsyncSession,
    user_id: int,
    quest_id: int,
) -> QuestParticipant | None:
    """The (user, quest) participation record, or None if never joined."""
    result = await db.execute(
        select(QuestParticipant).where(
            QuestParticipant.quest_id == quest_id,
            QuestParticipant.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def list_quests(
    db: AsyncSession,
    category: str | None = None,
    difficulty: str | None = None,
    tier: str | None = None,
    search: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Quest]:
    """Newest-first quests matching every given filter."""
    stmt = select(Quest)
    if category:
        stmt = stmt.where(Quest.category == category)
    if difficulty:
        stmt = stmt.where(Quest.difficulty == difficulty)
    if tier:
        stmt = stmt.where(Quest.tier == tier)
    if status:
        stmt = stmt.where(Quest.status == status)
    if search:
        stmt = stmt.where(or_(
            Quest.title.icontains(search, autoescape=True),
            Quest.description.icontains(search, autoescape=True),
        ))
    stmt = stmt.order_by(Quest.created_at.desc(), Quest.id.desc()).offset(offset).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def list_quests_by_creator(db: AsyncSession, username: str) -> list[Quest]:
    """Quests owned by whoever holds ``username`` now (case-insensitive)."""
    result = await db.execute(
        select(Quest)
        .join(User, User.id == Quest.created_by_id)
        .where(func.lower(User.username) == username.lower())
        .order_by(Quest.created_at.desc(), Quest.id.desc())
    )
    return list(result.scalars().all())


async def list_active_quests_for_user(db: AsyncSession, user_id: int) -> list[QuestParticipant]:
    """Participations still in progress (joined or submitted), with their quests loaded."""
    result = await db.execute(
        select(QuestParticipant)
        .where(
            QuestParticipant.user_id == user_id,
            QuestParticipant.status.in_(ACTIVE_PARTICIPANT_STATUSES),
        )
        .order_by(QuestParticipant.joined_at.desc(), QuestParticipant.id.desc())
    )
    return list(result.scalars().unique().all())


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_quest(db: AsyncSession, creator: User, data: QuestCreateRequest) -> Quest:
    """
    Persist a new quest and charge its creator.

    Raises:
        InsufficientFunds: If the creator's points yield a zero creation cost,
            or the balance dropped concurrently before the debit.
    """
    creator_cost = compute_creator_cost(creator.reward_points)
    if creator_cost <= 0:
        raise InsufficientFunds("Not enough reward points to create a quest")
    join_cost = compute_join_cost(creator_cost)

    quest = Quest(
        **data.model_dump(),
        creator_cost=creator_cost,
        join_cost=join_cost,
        status="active",
        participants=0,
        created_by_id=creator.id,
        created_by=creator.username,
    )
    db.add(quest)
    await db.flush()

    await apply_reward_points_delta(db, creator.id, -creator_cost)
    await record_transaction(
        db, creator.id, creator.username, "quest_creation_fee", -creator_cost,
        quest_id=quest.id, description=f"Created quest: {quest.title}",
    )
    await increment_user_counter(db, creator.id, "total_quests")
    await award_badge(db, creator, "quest_creator")

    logger.info(
        "quest_created",
        quest_id=quest.id,
        user_id=creator.id,
        creator_cost=creator_cost,
        join_cost=join_cost,
    )
    return quest


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------


async def join_quest(db: AsyncSession, user: User, quest_id: int) -> QuestParticipant:
    """
    Join a quest, paying its join cost.

    Checked in order: QuestNotFound, QuestFull, AlreadyJoined,
    InsufficientFunds, then quest status. The UNIQUE (quest, user)
    constraint and the conditional participant increment settle races the
    pre-checks cannot.
    """
    quest = await get_quest(db, quest_id)
    if quest.max_participants is not None and quest.participants >= quest.max_participants:
        raise QuestFull
    if await get_participation_status(db, user.id, quest_id) is not None:
        raise AlreadyJoined
    if user.reward_points < quest.join_cost:
        raise InsufficientFunds(f"Joining costs {quest.join_cost} reward points")
    if quest.status != "active":
        raise ValidationError("Quest is not accepting participants")

    participant = QuestParticipant(
        quest_id=quest.id,
        user_id=user.id,
        username=user.username,
        status="joined",
        evidence_submitted=False,
    )
    db.add(participant)
    try:
        await db.flush()
    except IntegrityError as e:
        raise AlreadyJoined from e

    await apply_reward_points_delta(db, user.id, -quest.join_cost)
    await record_transaction(
        db, user.id, user.username, "quest_join_fee", -quest.join_cost,
        quest_id=quest.id, description=f"Joined quest: {quest.title}",
    )

    result = await db.execute(
        update(Quest)
        .where(
            Quest.id == quest.id,
            or_(Quest.max_participants.is_(None), Quest.participants < Quest.max_participants),
        )
        .values(participants=Quest.participants + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise QuestFull
    await increment_user_counter(db, user.id, "total_quests")
    await get_quest(db, quest.id, refresh=True)

    logger.info("quest_joined", quest_id=quest.id, user_id=user.id, join_cost=quest.join_cost)
    return participant


# ---------------------------------------------------------------------------
# Submit evidence
# ---------------------------------------------------------------------------


async def submit_evidence(db: AsyncSession, user: User, quest_id: int, evidence: str) -> Submission:
    """Move a participation from joined to submitted and open a pending Submission."""
    await get_quest(db, quest_id)
    participant = await get_participation_status(db, user.id, quest_id)
    if participant is None:
        raise NotJoined
    evidence = (evidence or "").strip()
    if not evidence:
        raise ValidationError("Evidence must not be empty")
    if participant.status != "joined":
        raise AlreadySubmitted

    result = await db.execute(
        update(QuestParticipant)
        .where(QuestParticipant.id == participant.id, QuestParticipant.status == "joined")
        .values(status="submitted", evidence_submitted=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadySubmitted

    submission = Submission(
        quest_id=quest_id,
        user_id=user.id,
        username=user.username,
        evidence=evidence,
        votes_for=0,
        votes_against=0,
        status="pending",
    )
    db.add(submission)
    try:
        await db.flush()
    except IntegrityError as e:
        raise AlreadySubmitted from e

    logger.info("evidence_submitted", quest_id=quest_id, user_id=user.id, submission_id=submission.id)
    return submission


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def _ensure_creator(quest: Quest, user: User) -> None:
    if quest.created_by_id != user.id:
        raise Forbidden("Only the quest creator can modify this quest")


async def update_quest(db: AsyncSession, user: User, quest_id: int, data: QuestUpdateRequest) -> Quest:
    """Apply a partial update. Economy fields are fixed once a quest exists."""
    quest = await get_quest(db, quest_id)
    _ensure_creator(quest, user)

    changes: dict[str, Any] = data.model_dump(exclude_unset=True)
    for required in ("title", "description", "category", "difficulty", "tier", "duration",
                     "requirements", "verification_method", "status", "start_date", "end_date"):
        if required in changes and changes[required] is None:
            raise ValidationError(f"{required} cannot be cleared")

    if changes.get("max_participants") is not None and changes["max_participants"] < quest.participants:
        raise ValidationError("max_participants cannot be below the current participant count")

    start = changes.get("start_date", quest.start_date)
    end = changes.get("end_date", quest.end_date)
    if as_utc(end) < as_utc(start):
        raise ValidationError("end_date must not be before start_date")

    for field, value in changes.items():
        setattr(quest, field, value)
    try:
        await db.flush()
    except IntegrityError as e:
        # Capacity CHECK lost a race with a concurrent join
        raise ValidationError("max_participants cannot be below the current participant count") from e

    logger.info("quest_updated", quest_id=quest.id, user_id=user.id, fields=sorted(changes))
    return quest


async def delete_quest(db: AsyncSession, user: User, quest_id: int) -> int:
    """
    Delete an unjoined quest and refund its creation cost.

    Returns:
        The refunded amount.
    """
    quest = await get_quest(db, quest_id)
    _ensure_creator(quest, user)
    if quest.participants > 0:
        raise Conflict("Quest already has participants")

    refund, title = quest.creator_cost, quest.title
    result = await db.execute(
        delete(Quest)
        .where(Quest.id == quest_id, Quest.participants == 0)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise Conflict("Quest already has participants")
    db.expunge(quest)

    if refund > 0:
        await apply_reward_points_delta(db, user.id, refund)
        await record_transaction(
            db, user.id, user.username, "quest_creation_refund", refund,
            quest_id=quest_id, description=f"Deleted quest: {title}",
        )

    logger.info("quest_deleted", quest_id=quest_id, user_id=user.id, refund=refund)
    return refund


async def count_quests(db: AsyncSession, status: str | None = None) -> int:
    stmt = select(func.count()).select_from(Quest)
    if status:
        stmt = stmt.where(Quest.status == status)
    return (await db.scalar(stmt)) or 0