"""Idempotent schema upgrades applied after metadata.create_all().

Older Side Quest databases predate points, avatars, multiplayer quests and the
photo metadata columns; ``create_all`` never alters existing tables, so the
missing columns are added here. The achievement catalog is seeded last.
"""
from __future__ import annotations

import logging

from sqlalchemy import inspect, insert, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

from app.models.achievement import Achievement
from app.services.achievements import ACHIEVEMENT_CATALOG

logger = logging.getLogger(__name__)

# table -> [(column, sqlite DDL, postgres DDL)]
LATE_COLUMNS: dict[str, list[tuple[str, str, str]]] = {
    "users": [
        ("points", "INTEGER NOT NULL DEFAULT 0", "INTEGER NOT NULL DEFAULT 0"),
        ("profile_picture_url", "TEXT", "TEXT"),
    ],
    "quests": [
        ("is_multiplayer", "BOOLEAN NOT NULL DEFAULT 0", "BOOLEAN NOT NULL DEFAULT FALSE"),
        ("winner_id", "INTEGER REFERENCES users(id)", "INTEGER REFERENCES users(id) ON DELETE SET NULL"),
        ("reward_points", "INTEGER NOT NULL DEFAULT 100", "INTEGER NOT NULL DEFAULT 100"),
    ],
    "progress": [
        ("rewarded", "BOOLEAN NOT NULL DEFAULT 0", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ],
    "geothinkr_photos": [
        ("category", "VARCHAR(32) NOT NULL DEFAULT 'landmark'", "VARCHAR(32) NOT NULL DEFAULT 'landmark'"),
        ("difficulty", "VARCHAR(16) NOT NULL DEFAULT 'medium'", "VARCHAR(16) NOT NULL DEFAULT 'medium'"),
        ("verified", "BOOLEAN NOT NULL DEFAULT 0", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ],
    "geothinkr_history": [
        ("hints_used", "INTEGER NOT NULL DEFAULT 0", "INTEGER NOT NULL DEFAULT 0"),
        ("difficulty", "VARCHAR(16)", "VARCHAR(16)"),
        ("distance", "FLOAT", "DOUBLE PRECISION"),
    ],
}


def _existing_columns(sync_conn, table: str) -> set[str]:
    inspector = inspect(sync_conn)
    if not inspector.has_table(table):
        return set()
    return {col["name"] for col in inspector.get_columns(table)}


async def ensure_late_columns(conn: AsyncConnection) -> None:
    sqlite = conn.dialect.name == "sqlite"
    for table, columns in LATE_COLUMNS.items():
        existing = await conn.run_sync(_existing_columns, table)
        if not existing:
            continue
        for name, sqlite_ddl, pg_ddl in columns:
            if name in existing:
                continue
            if sqlite:
                ddl = f"ALTER TABLE {table} ADD COLUMN {name} {sqlite_ddl}"
            else:
                ddl = f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {name} {pg_ddl}"
            try:
                await conn.execute(text(ddl))
            except DBAPIError as ddl_error:
                message = str(getattr(ddl_error, "orig", ddl_error)).lower()
                if "duplicate column name" not in message and "already exists" not in message:
                    raise
            else:
                logger.info("Added column %s.%s", table, name)


async def ensure_achievement_catalog(conn: AsyncConnection) -> None:
    existing = set((await conn.execute(select(Achievement.key))).scalars().all())
    missing = [row for row in ACHIEVEMENT_CATALOG if row["key"] not in existing]
    if missing:
        await conn.execute(insert(Achievement), missing)
        logger.info("Seeded %d achievement(s)", len(missing))


def upgrade_order() -> tuple:
    return (
        ensure_late_columns,
        ensure_achievement_catalog,
    )


async def apply_schema_upgrades(conn: AsyncConnection) -> None:
    for step in upgrade_order():
        await step(conn)
