"""ORM models for the QuestClash schema.

Uniqueness of participations and votes is enforced here with UNIQUE
constraints, not by application-level existence checks.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from questclash.db.base import Base, BigIntId, JSONType, utcnow

TIERS = ("bronze", "silver", "gold", "platinum")
QUEST_CATEGORIES = ("fitness", "learning", "social", "creative", "wellness")
QUEST_DIFFICULTIES = ("easy", "medium", "hard", "extreme")
VERIFICATION_METHODS = ("photo", "video", "gps", "community")
QUEST_STATUSES = ("active", "completed", "pending_validation")
PARTICIPANT_STATUSES = ("joined", "submitted", "completed", "failed")
SUBMISSION_STATUSES = ("pending", "approved", "rejected")
TRANSACTION_TYPES = (
    "signup_bonus",
    "quest_creation_fee",
    "quest_join_fee",
    "quest_completion_reward",
    "quest_creation_refund",
)
REWARD_TYPES = ("xp", "usdc")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """A wallet-authenticated player."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("xp >= 0", name="ck_users_xp_non_negative"),
        CheckConstraint("reward_points >= 0", name="ck_users_reward_points_non_negative"),
        Index("ix_users_xp", "xp"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Progression ---
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    xp_to_next_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="bronze", server_default="bronze")
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_quests: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    completed_quests: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    votes_cast: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    badges: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # --- Economy ---
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    usdc_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class Quest(Base):
    """A challenge users pay to join and complete."""

    __tablename__ = "quests"
    __table_args__ = (
        CheckConstraint(
            "max_participants IS NULL OR participants <= max_participants",
            name="ck_quests_capacity",
        ),
        Index("ix_quests_created_by_id", "created_by_id"),
        Index("ix_quests_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    duration: Mapped[str] = mapped_column(String(64), nullable=False)
    requirements: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    verification_method: Mapped[str] = mapped_column(String(16), nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Economy ---
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    usdc_reward: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    voucher_reward: Mapped[str | None] = mapped_column(String(256), nullable=True)
    creator_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    join_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # --- Lifecycle ---
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active", server_default="active")
    participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # --- Provenance ---
    created_by_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class QuestParticipant(Base):
    """Join record for a (quest, user) pair."""

    __tablename__ = "quest_participants"
    __table_args__ = (
        UniqueConstraint("quest_id", "user_id", name="uq_quest_participants_quest_user"),
        Index("ix_quest_participants_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    quest_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("quests.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="joined", server_default="joined")
    evidence_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    quest: Mapped[Quest] = relationship("Quest", lazy="joined")


# ---------------------------------------------------------------------------
# Submissions & votes
# ---------------------------------------------------------------------------


class Submission(Base):
    """Evidence a participant provides, subject to community voting."""

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("quest_id", "user_id", name="uq_submissions_quest_user"),
        Index("ix_submissions_status", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    quest_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("quests.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    evidence: Mapped[str] = mapped_column(Text, nullable=False)
    votes_for: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    votes_against: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Vote(Base):
    """One approve/reject vote per (submission, voter)."""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("submission_id", "voter_id", name="uq_votes_submission_voter"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    submission_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False
    )
    voter_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    approve: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class XPTransaction(Base):
    """Append-only audit log of XP and reward-point movements."""

    __tablename__ = "xp_transactions"
    __table_args__ = (
        Index("ix_xp_transactions_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    # Plain column: the audit row outlives a deleted quest
    quest_id: Mapped[int | None] = mapped_column(BigIntId, nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class Reward(Base):
    """Reward earned by an approved submission."""

    __tablename__ = "rewards"
    __table_args__ = (
        Index("ix_rewards_user_claimed", "user_id", "claimed_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(8), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    quest_id: Mapped[int | None] = mapped_column(BigIntId, nullable=True)
    quest_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class FailedOperation(Base):
    """Best-effort record of a mutating command that failed."""

    __tablename__ = "failed_operations"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    operation: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[int | None] = mapped_column(BigIntId, nullable=True)
    quest_id: Mapped[int | None] = mapped_column(BigIntId, nullable=True)
    submission_id: Mapped[int | None] = mapped_column(BigIntId, nullable=True)
    error_kind: Mapped[str] = mapped_column(String(64), nullable=False)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    context: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
