"""Initial QuestClash schema: users, quests, participation, voting, ledger, rewards.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id                BIGSERIAL PRIMARY KEY,
            wallet_address    VARCHAR(64) NOT NULL UNIQUE,
            username          VARCHAR(64) NOT NULL UNIQUE,
            avatar            TEXT,
            xp                INT NOT NULL DEFAULT 0,
            level             INT NOT NULL DEFAULT 1,
            xp_to_next_level  INT NOT NULL DEFAULT 1000,
            tier              VARCHAR(16) NOT NULL DEFAULT 'bronze',
            streak            INT NOT NULL DEFAULT 0,
            rank              INT NOT NULL DEFAULT 0,
            total_quests      INT NOT NULL DEFAULT 0,
            completed_quests  INT NOT NULL DEFAULT 0,
            votes_cast        INT NOT NULL DEFAULT 0,
            badges            JSONB NOT NULL DEFAULT '[]'::jsonb,
            reward_points     INT NOT NULL DEFAULT 0,
            usdc_balance      NUMERIC(14, 2) NOT NULL DEFAULT 0,
            credits           INT NOT NULL DEFAULT 0,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT now(),
            last_login        TIMESTAMPTZ,
            CONSTRAINT ck_users_xp_non_negative CHECK (xp >= 0),
            CONSTRAINT ck_users_reward_points_non_negative CHECK (reward_points >= 0)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_xp ON users (xp)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS quests (
            id                   BIGSERIAL PRIMARY KEY,
            title                VARCHAR(200) NOT NULL,
            description          TEXT NOT NULL,
            category             VARCHAR(32) NOT NULL,
            difficulty           VARCHAR(16) NOT NULL,
            tier                 VARCHAR(16) NOT NULL,
            duration             VARCHAR(64) NOT NULL,
            requirements         JSONB NOT NULL DEFAULT '[]'::jsonb,
            verification_method  VARCHAR(16) NOT NULL,
            image                TEXT,
            xp_reward            INT NOT NULL,
            usdc_reward          NUMERIC(14, 2),
            voucher_reward       VARCHAR(256),
            creator_cost         INT NOT NULL DEFAULT 0,
            join_cost            INT NOT NULL DEFAULT 0,
            status               VARCHAR(32) NOT NULL DEFAULT 'active',
            participants         INT NOT NULL DEFAULT 0,
            max_participants     INT,
            created_by_id        BIGINT REFERENCES users(id) ON DELETE SET NULL,
            created_by           VARCHAR(64) NOT NULL,
            start_date           TIMESTAMPTZ NOT NULL,
            end_date             TIMESTAMPTZ NOT NULL,
            created_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_quests_capacity
                CHECK (max_participants IS NULL OR participants <= max_participants)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_quests_created_by_id ON quests (created_by_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_quests_status ON quests (status)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS quest_participants (
            id                  BIGSERIAL PRIMARY KEY,
            quest_id            BIGINT NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            user_id             BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            username            VARCHAR(64) NOT NULL,
            status              VARCHAR(16) NOT NULL DEFAULT 'joined',
            evidence_submitted  BOOLEAN NOT NULL DEFAULT FALSE,
            joined_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_quest_participants_quest_user UNIQUE (quest_id, user_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_quest_participants_user ON quest_participants (user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            id             BIGSERIAL PRIMARY KEY,
            quest_id       BIGINT NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            user_id        BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            username       VARCHAR(64) NOT NULL,
            evidence       TEXT NOT NULL,
            votes_for      INT NOT NULL DEFAULT 0,
            votes_against  INT NOT NULL DEFAULT 0,
            status         VARCHAR(16) NOT NULL DEFAULT 'pending',
            submitted_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
            resolved_at    TIMESTAMPTZ,
            CONSTRAINT uq_submissions_quest_user UNIQUE (quest_id, user_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_submissions_status ON submissions (status)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS votes (
            id             BIGSERIAL PRIMARY KEY,
            submission_id  BIGINT NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
            voter_id       BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            approve        BOOLEAN NOT NULL,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_votes_submission_voter UNIQUE (submission_id, voter_id)
        )
    """)

    # quest_id is not a foreign key; ledger rows outlive deleted quests
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id                BIGSERIAL PRIMARY KEY,
            user_id           BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            username          VARCHAR(64) NOT NULL,
            transaction_type  VARCHAR(32) NOT NULL,
            amount            INT NOT NULL,
            quest_id          BIGINT,
            description       VARCHAR(256),
            created_at        TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_xp_transactions_user_created ON xp_transactions (user_id, created_at)"
    )

    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id           BIGSERIAL PRIMARY KEY,
            user_id      BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type         VARCHAR(8) NOT NULL,
            amount       NUMERIC(14, 2) NOT NULL,
            quest_id     BIGINT,
            quest_title  VARCHAR(200),
            created_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
            claimed_at   TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_rewards_user_claimed ON rewards (user_id, claimed_at)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS failed_operations (
            id             BIGSERIAL PRIMARY KEY,
            operation      VARCHAR(64) NOT NULL,
            user_id        BIGINT,
            quest_id       BIGINT,
            submission_id  BIGINT,
            error_kind     VARCHAR(64) NOT NULL,
            detail         TEXT,
            context        JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)


def downgrade() -> None:
    for table in (
        "failed_operations",
        "rewards",
        "xp_transactions",
        "votes",
        "submissions",
        "quest_participants",
        "quests",
        "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
