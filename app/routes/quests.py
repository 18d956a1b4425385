# app/routes/quests.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_token import Identity, get_current_identity
from app.database import get_db
from app.models.progress import Progress
from app.models.quest import Quest
from app.models.user import User
from app.schemas import MultiplayerBoard, QuestCard, QuestLeaderboardEntry

router = APIRouter(tags=["Quests"])


def _card(quest: Quest) -> QuestCard:
    winner = quest.winner
    return QuestCard(
        quest_id=quest.id,
        text=quest.text,
        reward_points=quest.reward_points,
        location_name=quest.location.name if quest.location else None,
        winner_name=winner.name if winner else None,
        winner_picture_url=winner.profile_picture_url if winner else None,
    )


# --------- GET /quests/multiplayer ---------
@router.get("/quests/multiplayer", response_model=MultiplayerBoard)
async def multiplayer_board(
    db: AsyncSession = Depends(get_db),
    _: Identity = Depends(get_current_identity),
):
    """Open multiplayer quests, and the claimed ones with their winners (newest first)."""
    quests = (
        await db.execute(
            select(Quest).where(Quest.is_multiplayer.is_(True)).order_by(Quest.id.desc())
        )
    ).scalars().all()
    return MultiplayerBoard(
        active=[_card(q) for q in reversed(quests) if q.winner_id is None],
        claimed=[_card(q) for q in quests if q.winner_id is not None],
    )


# --------- GET /leaderboard/quests ---------
@router.get("/leaderboard/quests", response_model=List[QuestLeaderboardEntry])
async def quest_leaderboard(
    db: AsyncSession = Depends(get_db),
    _: Identity = Depends(get_current_identity),
    limit: int = Query(20, ge=1, le=100),
):
    completed_count = func.count(Progress.id)
    stmt = (
        select(
            User.id.label("user_id"),
            func.coalesce(User.name, User.email).label("name"),
            completed_count.label("completed_count"),
        )
        .join(Progress, Progress.user_id == User.id)
        .where(Progress.completed.is_(True))
        .group_by(User.id, User.name, User.email)
        .order_by(completed_count.desc(), User.id.asc())
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    ranked, prev, rank = [], None, 0
    for r in rows:
        if r.completed_count != prev:
            rank = len(ranked) + 1
            prev = r.completed_count
        ranked.append(
            QuestLeaderboardEntry(
                rank=rank,
                user_id=r.user_id,
                name=r.name,
                completed_count=r.completed_count,
            )
        )
    return ranked
