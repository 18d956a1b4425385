"""Attempt ledger: at most one scored GeoThinkr attempt per (user, photo)."""
import enum
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AlreadyPlayed
from app.models.geothinkr import GeoThinkrHistory

logger = logging.getLogger(__name__)


class AttemptOutcome(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "already_played"


async def has_attempt(db: AsyncSession, user_id: int, photo_id: int) -> bool:
    """Early exit only; the unique constraint is what actually guards the ledger."""
    res = await db.execute(
        select(GeoThinkrHistory.id).where(
            GeoThinkrHistory.user_id == user_id,
            GeoThinkrHistory.photo_id == photo_id,
        )
    )
    return res.scalar_one_or_none() is not None


async def record_attempt(
    db: AsyncSession,
    user_id: int,
    photo_id: int,
    points_awarded: int,
    *,
    hints_used: int = 0,
    difficulty: Optional[str] = None,
    distance: Optional[float] = None,
) -> GeoThinkrHistory:
    """
    Insert the attempt row and flush it so a duplicate fails here, before any
    points are credited. On a duplicate the transaction is rolled back and
    AlreadyPlayed is raised; any other integrity failure (a missing user or
    photo) is re-raised as is. The caller commits.
    """
    entry = GeoThinkrHistory(
        user_id=user_id,
        photo_id=photo_id,
        points_awarded=points_awarded,
        hints_used=hints_used,
        difficulty=difficulty,
        distance=distance,
    )
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        # Only the (user, photo) unique constraint means "already played".
        if not await has_attempt(db, user_id, photo_id):
            raise
        logger.info("Duplicate attempt rejected by constraint: user=%s photo=%s", user_id, photo_id)
        raise AlreadyPlayed(user_id, photo_id) from exc
    return entry


async def try_record_attempt(
    db: AsyncSession,
    user_id: int,
    photo_id: int,
    points_awarded: int,
    **details,
) -> AttemptOutcome:
    if await has_attempt(db, user_id, photo_id):
        return AttemptOutcome.REJECTED
    try:
        await record_attempt(db, user_id, photo_id, points_awarded, **details)
    except AlreadyPlayed:
        return AttemptOutcome.REJECTED
    return AttemptOutcome.ACCEPTED
