# app/routes/geothinkr.py
import logging
import random
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_token import Identity, get_current_identity, get_current_user
from app.database import get_db
from app.errors import AlreadyPlayed, NoPhotosAvailable, PhotoNotFound, StorageFailure
from app.models.achievement import Achievement, UserAchievement
from app.models.geothinkr import GeoThinkrHistory, GeoThinkrPhoto
from app.models.user import User
from app.rate_limiter import get_guess_rate_limiter
from app.schemas import (
    AchievementStatus, GamePhoto, GeoLeaderboardEntry, GeoStats, GuessResult, GuessSubmission,
)
from app.scoring import SPOT_ON_POINTS, score
from app.services import ledger
from app.services.achievements import LatestAttempt, award_achievements
from app.services.points import increment_points

router = APIRouter(prefix="/geothinkr", tags=["GeoThinkr"])
logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 50


# -------------------------------------------------------------------
# GET /geothinkr/game – a random verified photo the player hasn't played
# -------------------------------------------------------------------
@router.get("/game", response_model=GamePhoto)
async def next_photo(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    played = select(GeoThinkrHistory.photo_id).where(GeoThinkrHistory.user_id == identity.user_id)
    candidates = (
        await db.execute(
            select(GeoThinkrPhoto).where(
                GeoThinkrPhoto.verified.is_(True),
                GeoThinkrPhoto.id.not_in(played),
            )
        )
    ).scalars().all()
    if not candidates:
        raise NoPhotosAvailable()
    return GamePhoto.model_validate(random.choice(candidates))


# -------------------------------------------------------------------
# POST /geothinkr/game – score a guess (+ achievements)
# -------------------------------------------------------------------
@router.post("/game", response_model=GuessResult)
async def submit_guess(
    guess: GuessSubmission,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_id = current_user.id

    limiter = get_guess_rate_limiter()
    if limiter and not await limiter.try_acquire(f"user:{user_id}"):
        wait = await limiter.retry_after(f"user:{user_id}")
        raise HTTPException(
            status_code=429,
            detail="Too many guesses. Please slow down.",
            headers={"Retry-After": str(wait)},
        )

    # 1) One scored attempt per photo
    if await ledger.has_attempt(db, user_id, guess.photo_id):
        raise AlreadyPlayed(user_id, guess.photo_id)

    # 2) Photo must exist
    photo = (
        await db.execute(select(GeoThinkrPhoto).where(GeoThinkrPhoto.id == guess.photo_id))
    ).scalar_one_or_none()
    if photo is None:
        raise PhotoNotFound()
    target_x, target_y = photo.x_coordinate, photo.y_coordinate
    location_name, category = photo.location_name, photo.category

    # 3) Score
    result = score((guess.x, guess.y), (target_x, target_y), guess.difficulty, guess.hints_used)

    # 4) History row + payout commit together
    try:
        await ledger.record_attempt(
            db,
            user_id,
            guess.photo_id,
            result.final_points,
            hints_used=guess.hints_used,
            difficulty=guess.difficulty,
            distance=result.distance,
        )
        if result.final_points > 0:
            await increment_points(db, user_id, result.final_points)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to record guess for user %s photo %s", user_id, guess.photo_id)
        raise StorageFailure() from exc

    # 5) Achievements (the points are already committed)
    try:
        earned = await award_achievements(
            db, user_id, LatestAttempt(tier=result.tier, hints_used=guess.hints_used)
        )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Achievement evaluation failed for user %s", user_id)
        earned = []

    return GuessResult(
        distance=result.distance,
        tier=result.tier,
        base_points=result.base_points,
        points=result.final_points,
        hints_used=guess.hints_used,
        difficulty=guess.difficulty,
        correct_x=target_x,
        correct_y=target_y,
        location_name=location_name,
        category=category,
        achievements_earned=earned,
    )


# -------------------------------------------------------------------
# GET /geothinkr/stats – the caller's totals
# -------------------------------------------------------------------
@router.get("/stats", response_model=GeoStats)
async def my_stats(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    row = (
        await db.execute(
            select(
                func.count(GeoThinkrHistory.id).label("total_games"),
                func.coalesce(
                    func.sum(case((GeoThinkrHistory.points_awarded >= SPOT_ON_POINTS, 1), else_=0)), 0
                ).label("spot_ons"),
                func.coalesce(func.sum(GeoThinkrHistory.points_awarded), 0).label("total_points"),
            ).where(GeoThinkrHistory.user_id == identity.user_id)
        )
    ).one()

    total_games = int(row.total_games or 0)
    spot_ons = int(row.spot_ons or 0)
    return GeoStats(
        total_games=total_games,
        spot_ons=spot_ons,
        total_points=int(row.total_points or 0),
        accuracy_percent=round(spot_ons / total_games * 100) if total_games else 0,
    )


# -------------------------------------------------------------------
# GET /geothinkr/leaderboard – top players by GeoThinkr points
# -------------------------------------------------------------------
@router.get("/leaderboard", response_model=List[GeoLeaderboardEntry])
async def geo_leaderboard(
    db: AsyncSession = Depends(get_db),
    _: Identity = Depends(get_current_identity),
):
    total_points = func.coalesce(func.sum(GeoThinkrHistory.points_awarded), 0)
    stmt = (
        select(
            User.id.label("user_id"),
            User.name.label("name"),
            User.profile_picture_url.label("profile_picture_url"),
            total_points.label("total_points"),
            func.count(GeoThinkrHistory.id).label("total_games"),
            func.sum(case((GeoThinkrHistory.points_awarded >= SPOT_ON_POINTS, 1), else_=0)).label("spot_ons"),
        )
        .join(GeoThinkrHistory, GeoThinkrHistory.user_id == User.id)
        .group_by(User.id, User.name, User.profile_picture_url)
        .order_by(total_points.desc(), User.id.asc())
        .limit(LEADERBOARD_SIZE)
    )
    rows = (await db.execute(stmt)).all()

    ranked, prev_points, rank = [], None, 0
    for r in rows:
        points = int(r.total_points or 0)
        if points != prev_points:
            rank = len(ranked) + 1
            prev_points = points
        ranked.append(
            GeoLeaderboardEntry(
                rank=rank,
                user_id=r.user_id,
                name=r.name or "Unknown",
                profile_picture_url=r.profile_picture_url,
                total_points=points,
                total_games=int(r.total_games or 0),
                spot_ons=int(r.spot_ons or 0),
            )
        )
    return ranked


# -------------------------------------------------------------------
# GET /geothinkr/achievements – catalog with the caller's earned_at
# -------------------------------------------------------------------
@router.get("/achievements", response_model=List[AchievementStatus])
async def my_achievements(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    catalog = (await db.execute(select(Achievement).order_by(Achievement.id))).scalars().all()
    earned = {
        row.achievement_id: row.earned_at
        for row in (
            await db.execute(
                select(UserAchievement.achievement_id, UserAchievement.earned_at)
                .where(UserAchievement.user_id == identity.user_id)
            )
        ).all()
    }
    return [
        AchievementStatus(
            achievement_id=a.id,
            key=a.key,
            name=a.name,
            description=a.description,
            icon=a.icon,
            earned_at=earned.get(a.id),
        )
        for a in catalog
    ]
