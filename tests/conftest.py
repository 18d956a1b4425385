import sys
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.database import build_session_factory, create_schema  # noqa: E402
from app.models.geothinkr import GeoThinkrPhoto  # noqa: E402
from app.models.location import Location  # noqa: E402
from app.models.quest import Quest  # noqa: E402
from app.models.user import User  # noqa: E402


class SqliteDatabase:
    """A throwaway SQLite file with the full schema, used as ``async with database as sessions``."""

    def __init__(self, path: Path) -> None:
        self.url = f"sqlite+aiosqlite:///{path}"
        self.engine = None
        self.sessions = None

    async def __aenter__(self):
        # NullPool: every session gets its own connection, like separate requests.
        self.engine = create_async_engine(self.url, poolclass=NullPool)
        await create_schema(self.engine)
        self.sessions = build_session_factory(self.engine)
        return self.sessions

    async def __aexit__(self, exc_type, exc, tb):
        await self.engine.dispose()

    async def add_user(self, email: str, *, name: Optional[str] = None, role: str = "player", points: int = 0) -> int:
        async with self.sessions() as session:
            user = User(email=email, name=name or email.split("@")[0], role=role, points=points)
            session.add(user)
            await session.commit()
            return user.id

    async def add_photo(
        self, x: int, y: int, *, category: str = "landmark", difficulty: str = "medium", verified: bool = True
    ) -> int:
        async with self.sessions() as session:
            photo = GeoThinkrPhoto(
                image_url=f"/media/geothinkr/{x}_{y}.jpg",
                x_coordinate=x,
                y_coordinate=y,
                location_name=f"Spot {x},{y}",
                category=category,
                difficulty=difficulty,
                verified=verified,
            )
            session.add(photo)
            await session.commit()
            return photo.id

    async def add_quest(
        self, text: str, *, location: str = "Library", multiplayer: bool = False, reward: int = 100
    ) -> int:
        async with self.sessions() as session:
            loc = (await session.execute(select(Location).where(Location.name == location))).scalar_one_or_none()
            if loc is None:
                loc = Location(name=location)
                session.add(loc)
                await session.flush()
            quest = Quest(location_id=loc.id, text=text, is_multiplayer=multiplayer, reward_points=reward)
            session.add(quest)
            await session.commit()
            return quest.id

    async def balance(self, user_id: int) -> int:
        async with self.sessions() as session:
            return (await session.get(User, user_id)).points

    async def winner(self, quest_id: int) -> Optional[int]:
        async with self.sessions() as session:
            return (await session.get(Quest, quest_id)).winner_id


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def database(tmp_path):
    return SqliteDatabase(tmp_path / "sidequest-test.db")
