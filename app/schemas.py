# app/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas, organized by domain
# ------------------------------------------------------------
from datetime import datetime
import re
from typing import Optional, List, Dict

from pydantic import (
    AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator,
)

from app.models.geothinkr import PHOTO_CATEGORIES, PHOTO_DIFFICULTIES


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _sanitize_single_line_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise TypeError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("HTML tags are not allowed in this field")
    return cleaned


def _normalize_choice(value: str | None, choices: tuple[str, ...], field: str) -> str | None:
    if value is None:
        return value
    normalized = str(value).strip().lower()
    if normalized not in choices:
        raise ValueError(f"{field} must be one of: {', '.join(choices)}")
    return normalized


# ============================================================
# Users / profile
# ============================================================

class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: str
    points: int = 0
    profile_picture_url: Optional[str] = None


class ProfileEnvelope(BaseModel):
    user: ProfileRead


class ProfileUpdate(BaseModel):
    profile_picture_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("profile_picture_url", mode="before")
    @classmethod
    def _clean_url(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize_single_line_text(value) if value is not None else value


# ============================================================
# GeoThinkr
# ============================================================

class GamePhoto(BaseModel):
    """A photo as served to a player; never carries the answer."""
    model_config = ConfigDict(from_attributes=True)

    photo_id: int = Field(validation_alias=AliasChoices("photo_id", "id"))
    image_url: str
    location_name: Optional[str] = None
    category: str
    difficulty: str


class GuessSubmission(BaseModel):
    photo_id: int
    # Pixel position on the campus map, always finite
    x: float = Field(allow_inf_nan=False)
    y: float = Field(allow_inf_nan=False)
    hints_used: int = Field(default=0, ge=0)
    # Client-chosen; unknown values score like "easy"
    difficulty: str = Field(default="easy", max_length=16)


class GuessResult(BaseModel):
    distance: float
    tier: str
    base_points: int
    points: int
    hints_used: int
    difficulty: str
    correct_x: int
    correct_y: int
    location_name: Optional[str] = None
    category: Optional[str] = None
    achievements_earned: List[str] = []


class GeoStats(BaseModel):
    total_games: int
    spot_ons: int
    total_points: int
    accuracy_percent: int


class GeoLeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    name: str
    profile_picture_url: Optional[str] = None
    total_points: int
    total_games: int
    spot_ons: int


class AchievementStatus(BaseModel):
    achievement_id: int
    key: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    earned_at: Optional[datetime] = None


class PhotoAdmin(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    image_url: str
    x_coordinate: int
    y_coordinate: int
    location_name: Optional[str] = None
    category: str
    difficulty: str
    verified: bool
    created_at: Optional[datetime] = None


class PhotoUpdate(BaseModel):
    id: int
    verified: Optional[bool] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _check_category(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_choice(value, PHOTO_CATEGORIES, "category")

    @field_validator("difficulty", mode="before")
    @classmethod
    def _check_difficulty(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_choice(value, PHOTO_DIFFICULTIES, "difficulty")

    def changes(self) -> Dict[str, object]:
        return self.model_dump(exclude={"id"}, exclude_none=True)


class PhotoDelete(BaseModel):
    id: int


# ============================================================
# Quests / progress
# ============================================================

class ProgressSubmission(BaseModel):
    quest_id: Optional[int] = None
    location_name: Optional[str] = Field(default=None, max_length=120)
    quest_text: Optional[str] = None
    completed: bool

    @model_validator(mode="after")
    def _needs_quest_reference(self) -> "ProgressSubmission":
        if self.quest_id is None and not (self.location_name and self.quest_text):
            raise ValueError("Provide quest_id, or location_name and quest_text")
        return self


class ProgressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    quest_id: int
    completed: bool
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProgressResult(BaseModel):
    success: bool = True
    claimed: bool
    points_awarded: int
    progress: ProgressRead


class QuestCard(BaseModel):
    quest_id: int
    text: str
    reward_points: int
    location_name: Optional[str] = None
    winner_name: Optional[str] = None
    winner_picture_url: Optional[str] = None


class MultiplayerBoard(BaseModel):
    active: List[QuestCard]
    claimed: List[QuestCard]


class QuestLeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    name: str
    completed_count: int


# ============================================================
# Admin
# ============================================================

class ManualAward(BaseModel):
    user_identifier: str = Field(validation_alias=AliasChoices("user_identifier", "user_email", "user"))
    amount: int = Field(validation_alias=AliasChoices("amount", "points"))

    @field_validator("user_identifier", mode="before")
    @classmethod
    def _clean_identifier(cls, value) -> str:
        return _sanitize_single_line_text(str(value))


class ManualAwardResult(BaseModel):
    success: bool = True
    user_id: int
    new_points: int
