from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint, func

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=True)
    email = Column(String, unique=True, nullable=False)
    role = Column(String(20), nullable=False, default="player", server_default="player")
    # Only ever changed through app.services.points.increment_points
    points = Column(Integer, nullable=False, default=0, server_default="0")
    profile_picture_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} points={self.points}>"
