from datetime import datetime

from sqlalchemy import Column, Integer, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


class Progress(Base):
    __tablename__ = "progress"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quest_id = Column(Integer, ForeignKey("quests.id", ondelete="CASCADE"), nullable=False, index=True)
    completed = Column(Boolean, nullable=False, default=False, server_default="false")
    completed_at = Column(DateTime, nullable=True)
    # Flipped once, when the quest's reward has been paid to this user
    rewarded = Column(Boolean, nullable=False, default=False, server_default="false")
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    quest = relationship("Quest", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", name="uq_progress_user_quest"),
    )
