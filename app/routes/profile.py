# app/routes/profile.py
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth_token import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas import ProfileEnvelope, ProfileRead, ProfileUpdate
from app.services.storage import get_image_storage, unique_name

router = APIRouter(tags=["Profile"])
logger = logging.getLogger(__name__)

AVATAR_FOLDER = "avatars"
MAX_AVATAR_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


async def _set_profile_picture(db: AsyncSession, user: User, url: str | None) -> None:
    await db.execute(update(User).where(User.id == user.id).values(profile_picture_url=url))
    await db.commit()
    user.profile_picture_url = url


@router.get("/user/profile", response_model=ProfileEnvelope)
async def read_profile(current_user: User = Depends(get_current_user)):
    return ProfileEnvelope(user=ProfileRead.model_validate(current_user))


@router.patch("/user/profile")
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pick a shop avatar (or clear it with null)."""
    await _set_profile_picture(db, current_user, payload.profile_picture_url)
    return {"ok": True}


@router.post("/upload")
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported image type")
    data = await file.read(MAX_AVATAR_BYTES + 1)
    await file.close()
    if not data:
        raise HTTPException(status_code=400, detail="No file provided")
    if len(data) > MAX_AVATAR_BYTES:
        raise HTTPException(status_code=413, detail="Image too large")

    storage = get_image_storage()
    url = await storage.put(
        AVATAR_FOLDER,
        unique_name(str(current_user.id), file.filename or "avatar"),
        data,
        file.content_type,
    )
    await _set_profile_picture(db, current_user, url)
    logger.info("User %s uploaded a new avatar", current_user.id)
    return {"url": url}
