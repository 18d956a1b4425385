from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship

from app.database import Base

DEFAULT_REWARD_POINTS = 100


class Quest(Base):
    __tablename__ = "quests"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    is_multiplayer = Column(Boolean, nullable=False, default=False, server_default="false")
    reward_points = Column(Integer, nullable=False, default=DEFAULT_REWARD_POINTS, server_default=str(DEFAULT_REWARD_POINTS))
    # Write-once: set by app.services.claims.claim_quest and never changed afterwards
    winner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=func.now())

    location = relationship("Location", back_populates="quests", lazy="selectin")
    winner = relationship("User", foreign_keys=[winner_id], lazy="selectin")

    def __repr__(self) -> str:
        return f"<Quest id={self.id} multiplayer={self.is_multiplayer} winner={self.winner_id}>"
