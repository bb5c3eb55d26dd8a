"""QuestClash administrative CLI.

Usage:
    questclash-admin seed
    questclash-admin assign-xp --wallet 0xabc... --amount 1000
    questclash-admin show-user --wallet 0xabc...
    questclash-admin counts
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.auth.service import get_or_create_user, get_user_by_address
from questclash.auth.wallet import is_valid_address
from questclash.config import get_settings
from questclash.database import close_db, get_session_factory, init_db
from questclash.db.models import Quest, User
from questclash.errors import QuestClashError, UserNotFound, ValidationError
from questclash.gamification.xp_service import apply_xp_delta, compute_rank, record_transaction
from questclash.middleware.logging import setup_logging
from questclash.quests.service import compute_join_cost, count_quests
from questclash.workflow import workflow

logger = structlog.get_logger()

SEED_CREATOR_WALLET = "0x00000000000000000000000000000000000c0de5"

SEED_QUESTS: list[dict[str, Any]] = [
    {
        "title": "10K Morning Run Challenge",
        "description": "Complete a 10km run before 9 AM and submit GPS tracking proof",
        "category": "fitness",
        "difficulty": "medium",
        "tier": "silver",
        "duration": "1 day",
        "requirements": ["GPS tracking enabled", "Complete before 9 AM", "Minimum pace: 6 min/km"],
        "verification_method": "gps",
        "image": "https://images.unsplash.com/photo-1476480862126-209bfaa8edc8?w=400",
        "xp_reward": 500,
        "usdc_reward": Decimal("5"),
        "voucher_reward": None,
        "max_participants": 500,
        "days": 1,
    },
    {
        "title": "Learn 50 New Words in Spanish",
        "description": "Master 50 Spanish vocabulary words and pass the quiz",
        "category": "learning",
        "difficulty": "easy",
        "tier": "bronze",
        "duration": "3 days",
        "requirements": ["Complete vocabulary list", "Pass quiz with 80%+ score", "Submit screenshot"],
        "verification_method": "photo",
        "image": "https://images.unsplash.com/photo-1546410531-bb4caa6b424d?w=400",
        "xp_reward": 300,
        "usdc_reward": None,
        "voucher_reward": "Duolingo Premium 1 Month",
        "max_participants": None,
        "days": 3,
    },
    {
        "title": "Community Garden Volunteer Day",
        "description": "Spend two hours helping at a local community garden and share a photo",
        "category": "social",
        "difficulty": "easy",
        "tier": "bronze",
        "duration": "1 week",
        "requirements": ["Two hours of volunteering", "Photo at the garden"],
        "verification_method": "community",
        "image": None,
        "xp_reward": 250,
        "usdc_reward": None,
        "voucher_reward": None,
        "max_participants": 50,
        "days": 7,
    },
]


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def seed(db: AsyncSession) -> int:
    """Insert the demo creator and quests. Idempotent; returns quests created."""
    created = 0
    now = datetime.now(timezone.utc)
    async with workflow(db, "admin_seed"):
        creator, _ = await get_or_create_user(db, SEED_CREATOR_WALLET)
        for entry in SEED_QUESTS:
            exists = await db.scalar(select(Quest.id).where(Quest.title == entry["title"]))
            if exists is not None:
                continue
            fields = {k: v for k, v in entry.items() if k != "days"}
            # Seeded quests are house quests: no fee is charged to the creator
            db.add(Quest(
                **fields,
                creator_cost=0,
                join_cost=compute_join_cost(0),
                status="active",
                participants=0,
                created_by_id=creator.id,
                created_by=creator.username,
                start_date=now,
                end_date=now + timedelta(days=entry["days"]),
            ))
            created += 1
        await db.flush()
    logger.info("seed_complete", quests_created=created)
    return created


async def assign_xp(db: AsyncSession, wallet: str, amount: int) -> User:
    """Credit XP to a wallet's user, log it, and refresh their rank."""
    if not is_valid_address(wallet):
        raise ValidationError(f"Invalid wallet address: {wallet}")
    async with workflow(db, "admin_assign_xp"):
        user = await get_user_by_address(db, wallet)
        if user is None:
            raise UserNotFound(f"No user with wallet {wallet}")
        user = await apply_xp_delta(db, user.id, amount)
        await record_transaction(
            db, user.id, user.username, "signup_bonus", amount,
            description=f"Admin XP grant for wallet {user.wallet_address}",
        )
        await compute_rank(db, user.id)
    logger.info("xp_assigned", user_id=user.id, amount=amount, xp=user.xp, level=user.level)
    return user


async def show_user(db: AsyncSession, wallet: str) -> dict[str, Any]:
    user = await get_user_by_address(db, wallet)
    if user is None:
        raise UserNotFound(f"No user with wallet {wallet}")
    return {
        "id": user.id,
        "username": user.username,
        "wallet": user.wallet_address,
        "xp": user.xp,
        "level": user.level,
        "xp_to_next_level": user.xp_to_next_level,
        "tier": user.tier,
        "rank": user.rank,
        "streak": user.streak,
        "reward_points": user.reward_points,
        "usdc_balance": str(user.usdc_balance),
        "badges": ", ".join(user.badges or []) or "-",
    }


async def counts(db: AsyncSession) -> dict[str, int]:
    users = await db.scalar(select(func.count()).select_from(User))
    return {
        "users": users or 0,
        "quests": await count_quests(db),
        "active_quests": await count_quests(db, status="active"),
    }


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace) -> None:
    settings = get_settings()
    await init_db(settings.database_url, timeout=settings.store_timeout_seconds)
    try:
        async with get_session_factory()() as db:
            if args.command == "seed":
                created = await seed(db)
                print(f"Seeded {created} quest(s)")
            elif args.command == "assign-xp":
                user = await assign_xp(db, args.wallet, args.amount)
                print(f"{user.username}: xp={user.xp} level={user.level} rank={user.rank}")
            elif args.command == "show-user":
                for key, value in (await show_user(db, args.wallet)).items():
                    print(f"{key:>18}: {value}")
            elif args.command == "counts":
                for key, value in (await counts(db)).items():
                    print(f"{key}: {value}")
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="questclash-admin", description="QuestClash admin tools")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Insert demo quests")

    p = sub.add_parser("assign-xp", help="Credit XP to a user by wallet")
    p.add_argument("--wallet", required=True, help="0x-prefixed wallet address")
    p.add_argument("--amount", type=int, default=1000, help="XP to add (default: 1000)")

    p = sub.add_parser("show-user", help="Print a user's progression")
    p.add_argument("--wallet", required=True, help="0x-prefixed wallet address")

    sub.add_parser("counts", help="Count users and quests")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(get_settings())
    try:
        asyncio.run(_run(args))
    except QuestClashError as e:
        print(f"Error: {e.detail}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
