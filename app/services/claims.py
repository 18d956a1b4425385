"""Quest claim arbiter: exactly one winner per multiplayer quest."""
import enum
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import QuestNotFound
from app.models.quest import DEFAULT_REWARD_POINTS, Quest
from app.services.points import increment_points

logger = logging.getLogger(__name__)

quests_table = Quest.__table__


class ClaimOutcome(str, enum.Enum):
    WON = "won"
    LOST = "lost"
    NOT_CONTESTED = "not_contested"

    @property
    def succeeded(self) -> bool:
        return self is not ClaimOutcome.LOST


async def claim_quest(db: AsyncSession, quest_id: int, user_id: int) -> ClaimOutcome:
    """
    Try to become the winner of ``quest_id``.

    The conditional UPDATE (``winner_id IS NULL``) decides the race; the read
    before it is only a shortcut. On a win the reward is credited in the same
    transaction, so the caller's single commit publishes both or neither.
    """
    row = (
        await db.execute(
            select(quests_table.c.is_multiplayer, quests_table.c.winner_id, quests_table.c.reward_points)
            .where(quests_table.c.id == quest_id)
        )
    ).one_or_none()
    if row is None:
        raise QuestNotFound()

    if not row.is_multiplayer:
        return ClaimOutcome.NOT_CONTESTED
    if row.winner_id is not None:
        return ClaimOutcome.LOST

    result = await db.execute(
        update(quests_table)
        .where(quests_table.c.id == quest_id, quests_table.c.winner_id.is_(None))
        .values(winner_id=user_id)
    )
    if result.rowcount != 1:
        logger.info("User %s lost the race for quest %s", user_id, quest_id)
        return ClaimOutcome.LOST

    reward = row.reward_points if row.reward_points is not None else DEFAULT_REWARD_POINTS
    await increment_points(db, user_id, reward)
    logger.info("User %s won multiplayer quest %s (+%s)", user_id, quest_id, reward)
    return ClaimOutcome.WON
