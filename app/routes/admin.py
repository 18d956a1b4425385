# app/routes/admin.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_token import require_admin
from app.database import get_db
from app.errors import PhotoNotFound, StorageFailure, UserNotFound
from app.models.geothinkr import PHOTO_CATEGORIES, PHOTO_DIFFICULTIES, GeoThinkrPhoto
from app.models.user import User
from app.schemas import (
    ManualAward, ManualAwardResult, PhotoAdmin, PhotoDelete, PhotoUpdate,
)
from app.services.points import increment_points
from app.services.storage import get_image_storage, unique_name

admin = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger(__name__)

PHOTO_FOLDER = "geothinkr"


async def _find_user(db: AsyncSession, identifier: str) -> User:
    """Email first; a bare number is treated as a user id."""
    user = (await db.execute(select(User).where(User.email == identifier))).scalar_one_or_none()
    if user is None and identifier.isdigit():
        user = (await db.execute(select(User).where(User.id == int(identifier)))).scalar_one_or_none()
    if user is None:
        raise UserNotFound()
    return user


# -------------------------------------------------------------------
# POST /admin/points – manual award
# -------------------------------------------------------------------
@admin.post("/points", response_model=ManualAwardResult)
async def award_points(
    payload: ManualAward,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(require_admin),
):
    target = await _find_user(db, payload.user_identifier)
    target_id = target.id
    try:
        new_balance = await increment_points(db, target_id, payload.amount)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Manual award to user %s failed", target_id)
        raise StorageFailure() from exc

    logger.info("Admin %s awarded %+d points to user %s", admin_user.id, payload.amount, target_id)
    return ManualAwardResult(user_id=target_id, new_points=new_balance)


# -------------------------------------------------------------------
# GeoThinkr photo management
# -------------------------------------------------------------------
@admin.get("/geothinkr", response_model=List[PhotoAdmin])
async def list_photos(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    rows = (
        await db.execute(
            select(GeoThinkrPhoto).order_by(GeoThinkrPhoto.created_at.desc(), GeoThinkrPhoto.id.desc())
        )
    ).scalars().all()
    return rows


@admin.post("/geothinkr", response_model=PhotoAdmin, status_code=status.HTTP_201_CREATED)
async def create_photo(
    file: UploadFile = File(...),
    x: int = Form(...),
    y: int = Form(...),
    name: Optional[str] = Form(None),
    category: str = Form("landmark"),
    difficulty: str = Form("medium"),
    verified: bool = Form(False),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    category = category.strip().lower()
    difficulty = difficulty.strip().lower()
    if category not in PHOTO_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"category must be one of: {', '.join(PHOTO_CATEGORIES)}")
    if difficulty not in PHOTO_DIFFICULTIES:
        raise HTTPException(status_code=400, detail=f"difficulty must be one of: {', '.join(PHOTO_DIFFICULTIES)}")

    data = await file.read()
    await file.close()
    if not data:
        raise HTTPException(status_code=400, detail="Missing file")

    image_url = await get_image_storage().put(
        PHOTO_FOLDER, unique_name("geo", file.filename or "photo"), data, file.content_type
    )

    photo = GeoThinkrPhoto(
        image_url=image_url,
        x_coordinate=x,
        y_coordinate=y,
        location_name=(name or "").strip() or "Untitled Location",
        category=category,
        difficulty=difficulty,
        verified=verified,
    )
    db.add(photo)
    await db.commit()
    await db.refresh(photo)
    return photo


async def _get_photo(db: AsyncSession, photo_id: int) -> GeoThinkrPhoto:
    photo = (
        await db.execute(select(GeoThinkrPhoto).where(GeoThinkrPhoto.id == photo_id))
    ).scalar_one_or_none()
    if photo is None:
        raise PhotoNotFound()
    return photo


@admin.patch("/geothinkr", response_model=PhotoAdmin)
async def update_photo(
    payload: PhotoUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    changes = payload.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    photo = await _get_photo(db, payload.id)
    for field, value in changes.items():
        setattr(photo, field, value)
    await db.commit()
    await db.refresh(photo)
    return photo


@admin.delete("/geothinkr")
async def delete_photo(
    payload: PhotoDelete,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    photo = await _get_photo(db, payload.id)
    image_url = photo.image_url
    await db.delete(photo)
    await db.commit()

    try:
        await get_image_storage().delete_url(image_url)
    except Exception:
        # The row is gone; an orphaned file only wastes space.
        logger.warning("Could not delete stored image %s", image_url, exc_info=True)
    return {"success": True}
