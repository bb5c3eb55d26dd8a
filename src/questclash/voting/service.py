"""
Community validation of quest submissions.

A submission stays ``pending`` until it collects enough approvals or
rejections. Approval is evaluated before rejection after every vote, and the
pending -> resolved transition is a conditional UPDATE so exactly one vote
triggers the payout.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError

from questclash.config import get_settings
from questclash.db.models import Quest, QuestParticipant, Reward, Submission, User, Vote
from questclash.errors import AlreadyVoted, Forbidden, QuestNotFound, SubmissionClosed, SubmissionNotFound
from questclash.gamification.badge_service import COMMUNITY_HELPER_VOTES, award_badge
from questclash.gamification.xp_service import (
    apply_xp_delta,
    get_user,
    increment_user_counter,
    record_transaction,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def decide_outcome(
    votes_for: int,
    votes_against: int,
    approval_threshold: int | None = None,
    rejection_threshold: int | None = None,
) -> str:
    """Return ``approved``, ``rejected`` or ``pending`` for the given tallies."""
    settings = get_settings()
    approve_at = settings.approval_threshold if approval_threshold is None else approval_threshold
    reject_at = settings.rejection_threshold if rejection_threshold is None else rejection_threshold
    if votes_for >= approve_at:
        return "approved"
    if votes_against >= reject_at:
        return "rejected"
    return "pending"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_submission(db: AsyncSession, submission_id: int, *, refresh: bool = False) -> Submission:
    stmt = select(Submission).where(Submission.id == submission_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    submission = (await db.execute(stmt)).scalar_one_or_none()
    if submission is None:
        raise SubmissionNotFound
    return submission


async def list_pending_submissions(
    db: AsyncSession,
    exclude_user_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Submission]:
    """Oldest-first pending submissions, optionally hiding the caller's own and those they voted on."""
    stmt = select(Submission).where(Submission.status == "pending")
    if exclude_user_id is not None:
        stmt = stmt.where(
            Submission.user_id != exclude_user_id,
            ~exists().where(Vote.submission_id == Submission.id, Vote.voter_id == exclude_user_id),
        )
    stmt = stmt.order_by(Submission.submitted_at.asc(), Submission.id.asc()).offset(offset).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def list_submissions_for_quest(db: AsyncSession, quest_id: int) -> list[Submission]:
    result = await db.execute(
        select(Submission)
        .where(Submission.quest_id == quest_id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    return list(result.scalars().all())


async def has_voted(db: AsyncSession, submission_id: int, voter_id: int) -> bool:
    result = await db.execute(
        select(Vote.id).where(Vote.submission_id == submission_id, Vote.voter_id == voter_id)
    )
    return result.first() is not None


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------


async def cast_vote(db: AsyncSession, submission_id: int, voter: User, approve: bool) -> tuple[Submission, bool]:
    """
    Record one vote and resolve the submission if a threshold is crossed.

    Returns:
        Tuple of (submission, resolved_by_this_vote).
    """
    submission = await get_submission(db, submission_id)
    if submission.status != "pending":
        raise SubmissionClosed
    if submission.user_id == voter.id:
        raise Forbidden("You cannot vote on your own submission")
    if await has_voted(db, submission_id, voter.id):
        raise AlreadyVoted

    db.add(Vote(submission_id=submission_id, voter_id=voter.id, approve=approve))
    try:
        await db.flush()
    except IntegrityError as e:
        raise AlreadyVoted from e

    tally = Submission.votes_for if approve else Submission.votes_against
    result = await db.execute(
        update(Submission)
        .where(Submission.id == submission_id, Submission.status == "pending")
        .values({tally: tally + 1})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise SubmissionClosed

    votes_cast = await increment_user_counter(db, voter.id, "votes_cast")
    if votes_cast >= COMMUNITY_HELPER_VOTES:
        await award_badge(db, voter, "community_helper")

    submission = await get_submission(db, submission_id, refresh=True)
    outcome = decide_outcome(submission.votes_for, submission.votes_against)
    resolved = False
    if outcome != "pending":
        resolved = await _resolve(db, submission, outcome)
        submission = await get_submission(db, submission_id, refresh=True)

    logger.info(
        "Vote on submission %s by user %s (approve=%s): %s/%s -> %s",
        submission_id,
        voter.id,
        approve,
        submission.votes_for,
        submission.votes_against,
        submission.status,
    )
    return submission, resolved


async def _resolve(db: AsyncSession, submission: Submission, outcome: str) -> bool:
    """Move a pending submission to ``outcome``. False if another vote got there first."""
    result = await db.execute(
        update(Submission)
        .where(Submission.id == submission.id, Submission.status == "pending")
        .values(status=outcome, resolved_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False

    participant_status = "completed" if outcome == "approved" else "failed"
    await db.execute(
        update(QuestParticipant)
        .where(
            QuestParticipant.quest_id == submission.quest_id,
            QuestParticipant.user_id == submission.user_id,
            QuestParticipant.status == "submitted",
        )
        .values(status=participant_status)
        .execution_options(synchronize_session=False)
    )

    if outcome == "approved":
        await _issue_rewards(db, submission)
    return True


async def _issue_rewards(db: AsyncSession, submission: Submission) -> None:
    """Credit quest XP now; record any USDC reward as pending until claimed."""
    quest = (await db.execute(select(Quest).where(Quest.id == submission.quest_id))).scalar_one_or_none()
    if quest is None:
        raise QuestNotFound
    now = datetime.now(timezone.utc)

    if quest.xp_reward > 0:
        await apply_xp_delta(db, submission.user_id, quest.xp_reward)
        await record_transaction(
            db, submission.user_id, submission.username, "quest_completion_reward", quest.xp_reward,
            quest_id=quest.id, description=f"Completed quest: {quest.title}",
        )
        db.add(Reward(
            user_id=submission.user_id,
            type="xp",
            amount=quest.xp_reward,
            quest_id=quest.id,
            quest_title=quest.title,
            claimed_at=now,
        ))

    if quest.usdc_reward:
        db.add(Reward(
            user_id=submission.user_id,
            type="usdc",
            amount=quest.usdc_reward,
            quest_id=quest.id,
            quest_title=quest.title,
            claimed_at=None,
        ))
    await db.flush()

    await increment_user_counter(db, submission.user_id, "completed_quests")
    submitter = await get_user(db, submission.user_id)
    await award_badge(db, submitter, "first_completion")

    logger.info(
        "Submission %s approved: %s XP credited, usdc pending=%s",
        submission.id,
        quest.xp_reward,
        quest.usdc_reward,
    )
