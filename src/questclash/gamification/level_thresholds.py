"""Level and tier computation.

A level spans a fixed amount of XP (``xp_per_level``, 1000 by default):
level 1 covers 0..999, level 2 covers 1000..1999 and so on. Tier is a
coarse banding over level.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import case

from questclash.config import get_settings

# (exclusive upper level bound, tier)
TIER_BANDS: list[tuple[int, str]] = [
    (5, "bronze"),
    (10, "silver"),
    (20, "gold"),
]
TOP_TIER = "platinum"


def tier_for_level(level: int) -> str:
    """Map a level to its tier."""
    for bound, tier in TIER_BANDS:
        if level < bound:
            return tier
    return TOP_TIER


def compute_level(total_xp: int, xp_per_level: int | None = None) -> dict[str, Any]:
    """Compute level, XP remaining to the next level, and tier from total XP."""
    if total_xp < 0:
        msg = "XP cannot be negative"
        raise ValueError(msg)
    per_level = xp_per_level or get_settings().xp_per_level
    level = total_xp // per_level + 1
    return {
        "level": level,
        "xp_to_next_level": level * per_level - total_xp,
        "tier": tier_for_level(level),
    }


def level_columns(xp_expr: Any, xp_per_level: int | None = None) -> dict[str, Any]:  # noqa: ANN401
    """SQL expressions for level, xp_to_next_level and tier given a new-XP expression.

    Used as UPDATE values so progression is recomputed in the same statement
    that moves XP.
    """
    per_level = xp_per_level or get_settings().xp_per_level
    level_expr = xp_expr // per_level + 1
    tier_expr = case(
        *((level_expr < bound, tier) for bound, tier in TIER_BANDS),
        else_=TOP_TIER,
    )
    return {
        "level": level_expr,
        "xp_to_next_level": level_expr * per_level - xp_expr,
        "tier": tier_expr,
    }
