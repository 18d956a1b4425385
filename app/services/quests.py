"""Quest progress: upsert a player's progress row and pay out the reward once."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert
from app.errors import LocationNotFound, QuestAlreadyClaimed, QuestNotFound
from app.models.location import Location
from app.models.progress import Progress
from app.models.quest import DEFAULT_REWARD_POINTS, Quest
from app.services.claims import ClaimOutcome, claim_quest
from app.services.points import increment_points

logger = logging.getLogger(__name__)

progress_table = Progress.__table__


@dataclass
class QuestCompletion:
    progress: Progress
    claim: Optional[ClaimOutcome]
    points_awarded: int
    claimed: bool = False


async def find_quest(
    db: AsyncSession,
    *,
    quest_id: Optional[int] = None,
    location_name: Optional[str] = None,
    quest_text: Optional[str] = None,
) -> Quest:
    """Look a quest up by id, or by (location name, quest text) like the quest board does."""
    if quest_id is not None:
        quest = (await db.execute(select(Quest).where(Quest.id == quest_id))).scalar_one_or_none()
        if quest is None:
            raise QuestNotFound()
        return quest

    location = (
        await db.execute(select(Location).where(Location.name == location_name))
    ).scalar_one_or_none()
    if location is None:
        raise LocationNotFound()

    quest = (
        await db.execute(
            select(Quest).where(Quest.location_id == location.id, Quest.text == quest_text)
        )
    ).scalars().first()
    if quest is None:
        raise QuestNotFound()
    return quest


async def _ensure_progress_row(db: AsyncSession, user_id: int, quest_id: int, now: datetime) -> None:
    stmt = (
        dialect_insert(db, progress_table)
        .values(user_id=user_id, quest_id=quest_id, completed=False, rewarded=False, updated_at=now)
        .on_conflict_do_nothing(index_elements=["user_id", "quest_id"])
    )
    await db.execute(stmt)


def _row(user_id: int, quest_id: int):
    return (progress_table.c.user_id == user_id, progress_table.c.quest_id == quest_id)


async def set_quest_progress(db: AsyncSession, user_id: int, quest: Quest, completed: bool) -> QuestCompletion:
    """
    Record ``completed`` for (user, quest) and settle the reward, in one commit.

    Multiplayer quests go through the claim arbiter; a lost race rolls the
    whole transaction back and raises QuestAlreadyClaimed. Single-player
    quests pay ``reward_points`` the first time they are completed, guarded by
    a conditional update on ``progress.rewarded``.
    """
    quest_id = quest.id
    reward = quest.reward_points if quest.reward_points is not None else DEFAULT_REWARD_POINTS
    now = datetime.utcnow()

    await _ensure_progress_row(db, user_id, quest_id, now)
    if completed:
        await db.execute(
            update(progress_table)
            .where(*_row(user_id, quest_id), progress_table.c.completed.is_(False))
            .values(completed=True, completed_at=now, updated_at=now)
        )
    else:
        await db.execute(
            update(progress_table)
            .where(*_row(user_id, quest_id))
            .values(completed=False, completed_at=None, updated_at=now)
        )

    claim: Optional[ClaimOutcome] = None
    points_awarded = 0
    claimed = False
    if completed:
        if quest.is_multiplayer and quest.winner_id == user_id:
            claimed = True  # already ours; nothing left to claim
        else:
            claim = await claim_quest(db, quest_id, user_id)
            if claim is ClaimOutcome.LOST:
                await db.rollback()
                raise QuestAlreadyClaimed(quest_id)

        if claim is ClaimOutcome.WON:
            points_awarded = reward
            claimed = True
        if claim is not None:
            # Multiplayer winners were paid by the arbiter; this only marks it.
            flipped = await db.execute(
                update(progress_table)
                .where(*_row(user_id, quest_id), progress_table.c.rewarded.is_(False))
                .values(rewarded=True)
            )
            if claim is ClaimOutcome.NOT_CONTESTED and flipped.rowcount == 1:
                await increment_points(db, user_id, reward)
                points_awarded = reward

    await db.commit()

    progress = (
        await db.execute(
            select(Progress)
            .where(Progress.user_id == user_id, Progress.quest_id == quest_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    if points_awarded:
        logger.info("User %s completed quest %s (+%s)", user_id, quest_id, points_awarded)
    return QuestCompletion(progress=progress, claim=claim, points_awarded=points_awarded, claimed=claimed)
