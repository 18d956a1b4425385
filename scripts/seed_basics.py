import asyncio
import logging

import app.database as database
from sqlalchemy import select

from app.auth_token import create_session_token
from app.models.location import Location
from app.models.quest import Quest
from app.models.user import User

logger = logging.getLogger(__name__)

DEMO_QUESTS = {
    "Library": [("Find the rare books room", False, 100), ("First to the rooftop reading deck", True, 250)],
    "Student Union": [("Grab a coffee at the union cafe", False, 100)],
    "Quad": [("Take a photo with the founder's statue", False, 150), ("First to ring the quad bell", True, 300)],
}


async def main() -> None:
    """Create tables, seed demo locations/quests and an admin, print its session cookie."""

    await database.init_models()
    async with database.SessionLocal() as session:
        for location_name, quests in DEMO_QUESTS.items():
            location = (
                await session.execute(select(Location).where(Location.name == location_name))
            ).scalar_one_or_none()
            if location is None:
                location = Location(name=location_name)
                session.add(location)
                await session.flush()
                for text, multiplayer, reward in quests:
                    session.add(
                        Quest(location_id=location.id, text=text, is_multiplayer=multiplayer, reward_points=reward)
                    )

        admin = (
            await session.execute(select(User).where(User.email == "admin@sidequest.local"))
        ).scalar_one_or_none()
        if admin is None:
            admin = User(name="Admin", email="admin@sidequest.local", role="admin")
            session.add(admin)
        await session.commit()
        await session.refresh(admin)

    logger.info("Seeded demo quests.")
    print(f"sid={create_session_token(admin.id, is_admin=True)}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
