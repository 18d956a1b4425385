# app/routes/progress.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_token import Identity, get_current_identity
from app.database import get_db
from app.errors import StorageFailure
from app.models.progress import Progress
from app.schemas import ProgressRead, ProgressResult, ProgressSubmission
from app.services.quests import find_quest, set_quest_progress

router = APIRouter(prefix="/progress", tags=["Progress"])
logger = logging.getLogger(__name__)


@router.get("")
async def get_progress(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """
    The caller's quest progress keyed by location name, then quest text:
    ``{location: {quest_text: {completed, completed_at, quest_id}}}``.
    """
    rows = (
        await db.execute(select(Progress).where(Progress.user_id == identity.user_id))
    ).scalars().all()

    progress: dict[str, dict[str, dict]] = {}
    for p in rows:
        quest = p.quest
        location = quest.location if quest else None
        if not location:
            continue
        progress.setdefault(location.name, {})[quest.text] = {
            "completed": p.completed,
            "completed_at": p.completed_at.isoformat() if p.completed_at else None,
            "quest_id": p.quest_id,
        }
    return {"progress": progress}


@router.post("", response_model=ProgressResult)
async def save_progress(
    payload: ProgressSubmission,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    quest = await find_quest(
        db,
        quest_id=payload.quest_id,
        location_name=payload.location_name,
        quest_text=payload.quest_text,
    )

    try:
        outcome = await set_quest_progress(db, identity.user_id, quest, payload.completed)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to save progress for user %s quest %s", identity.user_id, payload.quest_id)
        raise StorageFailure("Failed to save progress") from exc

    return ProgressResult(
        claimed=outcome.claimed,
        points_awarded=outcome.points_awarded,
        progress=ProgressRead.model_validate(outcome.progress),
    )
