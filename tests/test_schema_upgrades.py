import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import create_async_engine

from app.database import create_schema
from app.models.achievement import Achievement
from app.services.achievements import ACHIEVEMENT_CATALOG


async def _create_legacy_schema(conn):
    await conn.exec_driver_sql(
        """
        CREATE TABLE users (
            id INTEGER PRIMARY KEY,
            name VARCHAR(120),
            email VARCHAR NOT NULL UNIQUE,
            role VARCHAR(20) NOT NULL DEFAULT 'player',
            created_at DATETIME
        )
        """
    )
    await conn.exec_driver_sql(
        """
        CREATE TABLE locations (
            id INTEGER PRIMARY KEY,
            name VARCHAR(120) NOT NULL UNIQUE,
            description TEXT
        )
        """
    )
    await conn.exec_driver_sql(
        """
        CREATE TABLE quests (
            id INTEGER PRIMARY KEY,
            location_id INTEGER NOT NULL REFERENCES locations(id),
            text TEXT NOT NULL,
            created_at DATETIME
        )
        """
    )
    await conn.exec_driver_sql(
        """
        CREATE TABLE geothinkr_photos (
            id INTEGER PRIMARY KEY,
            image_url TEXT NOT NULL,
            x_coordinate INTEGER NOT NULL,
            y_coordinate INTEGER NOT NULL,
            location_name VARCHAR(255),
            created_at DATETIME
        )
        """
    )
    await conn.exec_driver_sql("INSERT INTO users (id, name, email) VALUES (1, 'Ada', 'ada@example.com')")


def _columns(sync_conn, table):
    return {col["name"] for col in inspect(sync_conn).get_columns(table)}


@pytest.mark.anyio
async def test_legacy_tables_gain_late_columns(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")
    async with engine.begin() as conn:
        await _create_legacy_schema(conn)

    await create_schema(engine)

    async with engine.connect() as conn:
        assert {"points", "profile_picture_url"} <= await conn.run_sync(_columns, "users")
        assert {"is_multiplayer", "winner_id", "reward_points"} <= await conn.run_sync(_columns, "quests")
        assert {"category", "difficulty", "verified"} <= await conn.run_sync(_columns, "geothinkr_photos")
        # tables that did not exist are created whole
        assert {"hints_used", "difficulty", "distance"} <= await conn.run_sync(_columns, "geothinkr_history")

        points = (await conn.exec_driver_sql("SELECT points FROM users WHERE id = 1")).scalar_one()
        assert points == 0

    await engine.dispose()


@pytest.mark.anyio
async def test_upgrades_are_idempotent_and_seed_catalog_once(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")

    await create_schema(engine)
    await create_schema(engine)

    async with engine.connect() as conn:
        count = (await conn.execute(select(func.count(Achievement.id)))).scalar_one()
        keys = set((await conn.execute(select(Achievement.key))).scalars().all())

    assert count == len(ACHIEVEMENT_CATALOG)
    assert keys == {row["key"] for row in ACHIEVEMENT_CATALOG}
    await engine.dispose()
