"""GeoThinkr achievements.

Each rule is an independent predicate over a snapshot of the player's
attempt history (oldest first) plus the attempt that was just scored.
Awarding is idempotent: keys already earned are skipped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert
from app.models.achievement import Achievement, UserAchievement, utcnow
from app.models.geothinkr import PHOTO_CATEGORIES, GeoThinkrHistory, GeoThinkrPhoto
from app.scoring import SPOT_ON, SPOT_ON_POINTS

logger = logging.getLogger(__name__)

user_achievements_table = UserAchievement.__table__


@dataclass(frozen=True)
class AttemptSnapshot:
    points_awarded: int
    category: str | None = None


@dataclass(frozen=True)
class LatestAttempt:
    tier: str
    hints_used: int


ACHIEVEMENT_CATALOG: tuple[dict, ...] = (
    {"key": "first_guess", "name": "First Guess", "description": "Play your first GeoThinkr round.", "icon": "🎯"},
    {"key": "games_10", "name": "Regular", "description": "Play 10 GeoThinkr rounds.", "icon": "🗺️"},
    {"key": "games_50", "name": "Campus Cartographer", "description": "Play 50 GeoThinkr rounds.", "icon": "🧭"},
    {"key": "spot_on_5", "name": "Sharp Eye", "description": "Get 5 Spot-on! guesses.", "icon": "👁️"},
    {"key": "spot_on_10", "name": "Eagle Eye", "description": "Get 10 Spot-on! guesses.", "icon": "🦅"},
    {"key": "no_hints", "name": "No Help Needed", "description": "Score Spot-on! without using a hint.", "icon": "🧠"},
    {"key": "perfect_streak_3", "name": "Hat Trick", "description": "Three Spot-on! guesses in a row.", "icon": "🔥"},
    {"key": "all_categories", "name": "Explorer", "description": "Play a photo from every category.", "icon": "🌍"},
)


def _is_spot_on(attempt: AttemptSnapshot) -> bool:
    return attempt.points_awarded >= SPOT_ON_POINTS


def _spot_ons(history: Sequence[AttemptSnapshot]) -> int:
    return sum(1 for a in history if _is_spot_on(a))


def _perfect_streak(history: Sequence[AttemptSnapshot]) -> bool:
    recent = history[-3:]
    return len(recent) == 3 and all(_is_spot_on(a) for a in recent)


def _covers_all_categories(history: Sequence[AttemptSnapshot]) -> bool:
    seen = {a.category for a in history if a.category}
    return seen.issuperset(PHOTO_CATEGORIES)


Rule = Callable[[Sequence[AttemptSnapshot], LatestAttempt], bool]

RULES: dict[str, Rule] = {
    "first_guess": lambda h, _: len(h) >= 1,
    "games_10": lambda h, _: len(h) >= 10,
    "games_50": lambda h, _: len(h) >= 50,
    "spot_on_5": lambda h, _: _spot_ons(h) >= 5,
    "spot_on_10": lambda h, _: _spot_ons(h) >= 10,
    "no_hints": lambda _, latest: latest.tier == SPOT_ON and latest.hints_used == 0,
    "perfect_streak_3": lambda h, _: _perfect_streak(h),
    "all_categories": lambda h, _: _covers_all_categories(h),
}


def evaluate_achievements(history: Sequence[AttemptSnapshot], latest: LatestAttempt) -> set[str]:
    """Every key the history qualifies for, earned before or not."""
    return {key for key, rule in RULES.items() if rule(history, latest)}


async def load_history(db: AsyncSession, user_id: int) -> list[AttemptSnapshot]:
    rows = (
        await db.execute(
            select(GeoThinkrHistory.points_awarded, GeoThinkrPhoto.category)
            .join(GeoThinkrPhoto, GeoThinkrPhoto.id == GeoThinkrHistory.photo_id, isouter=True)
            .where(GeoThinkrHistory.user_id == user_id)
            .order_by(GeoThinkrHistory.created_at.asc(), GeoThinkrHistory.id.asc())
        )
    ).all()
    return [AttemptSnapshot(points_awarded=r.points_awarded or 0, category=r.category) for r in rows]


async def record_earned(db: AsyncSession, user_id: int, keys: Iterable[str]) -> list[str]:
    """
    Insert a UserAchievement row per key not yet earned; return the keys this
    call actually recorded. Each key is its own ``ON CONFLICT DO NOTHING``
    insert, so a row committed concurrently for one key never costs the others.
    """
    keys = set(keys)
    if not keys:
        return []

    catalog = {
        a.key: a
        for a in (await db.execute(select(Achievement).where(Achievement.key.in_(keys)))).scalars().all()
    }
    for missing in sorted(keys - catalog.keys()):
        logger.warning("Achievement %r qualified but is missing from the catalog", missing)

    earned_ids = set(
        (
            await db.execute(
                select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
            )
        ).scalars().all()
    )

    recorded = []
    for key, achievement in sorted(catalog.items()):
        if achievement.id in earned_ids:
            continue
        result = await db.execute(
            dialect_insert(db, user_achievements_table)
            .values(user_id=user_id, achievement_id=achievement.id, earned_at=utcnow())
            .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
        )
        if result.rowcount == 1:
            recorded.append(key)
        else:
            logger.info("Achievement %s for user %s already recorded concurrently", key, user_id)
    await db.commit()
    return recorded


async def award_achievements(db: AsyncSession, user_id: int, latest: LatestAttempt) -> list[str]:
    history = await load_history(db, user_id)
    return await record_earned(db, user_id, evaluate_achievements(history, latest))
