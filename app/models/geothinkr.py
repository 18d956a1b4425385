# app/models/geothinkr.py
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, ForeignKey, DateTime,
    UniqueConstraint, Index, func,
)
from sqlalchemy.orm import relationship

from app.database import Base

PHOTO_CATEGORIES = ("landmark", "building", "nature", "statue", "other")
PHOTO_DIFFICULTIES = ("easy", "medium", "hard")


class GeoThinkrPhoto(Base):
    __tablename__ = "geothinkr_photos"

    id = Column(Integer, primary_key=True, index=True)
    image_url = Column(Text, nullable=False)
    # Pixel coordinates on the static campus map image
    x_coordinate = Column(Integer, nullable=False)
    y_coordinate = Column(Integer, nullable=False)
    location_name = Column(String(255), nullable=True)
    category = Column(String(32), nullable=False, default="landmark", server_default="landmark")
    difficulty = Column(String(16), nullable=False, default="medium", server_default="medium")
    # Unverified photos are never served to players
    verified = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime, default=func.now())

    def __repr__(self) -> str:
        return f"<GeoThinkrPhoto id={self.id} ({self.x_coordinate},{self.y_coordinate}) verified={self.verified}>"


class GeoThinkrHistory(Base):
    """One immutable row per scored (user, photo) attempt."""

    __tablename__ = "geothinkr_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_id = Column(Integer, ForeignKey("geothinkr_photos.id", ondelete="CASCADE"), nullable=False, index=True)
    points_awarded = Column(Integer, nullable=False, default=0)
    hints_used = Column(Integer, nullable=False, default=0)
    difficulty = Column(String(16), nullable=True)
    distance = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    photo = relationship("GeoThinkrPhoto", lazy="selectin")
    user = relationship("User", lazy="selectin")

    __table_args__ = (
        # The source of truth for "one scored attempt per photo"
        UniqueConstraint("user_id", "photo_id", name="uq_geothinkr_history_user_photo"),
        Index("ix_geothinkr_history_user_time", "user_id", "created_at"),
    )
