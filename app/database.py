# app/database.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url

load_dotenv()


def _default_db_url() -> str:
    """
    File-based SQLite DB at the project root, used when no Postgres is configured.
    """
    root = Path(__file__).resolve().parents[1]
    return f"sqlite+aiosqlite:///{(root / 'sidequest.db').as_posix()}"


def _translate_sslmode(value: str) -> Optional[str]:
    """Translate libpq sslmode values to asyncpg-compatible flags."""

    normalized = value.strip().lower()
    if normalized in {"require", "verify-ca", "verify-full"}:
        return "true"
    if normalized == "disable":
        return "false"

    # "prefer" / "allow" have no asyncpg equivalent; leave the driver default.
    return None


def _normalize_database_url(raw_url: Optional[str]) -> Optional[str]:
    """Force the asyncpg driver for Postgres URLs (Supabase hands out plain postgres://)."""

    if not raw_url:
        return raw_url

    try:
        url = make_url(raw_url)
    except Exception:
        return raw_url

    driver = url.drivername.lower()
    if driver in {"postgresql", "postgres"} or (
        driver.startswith("postgresql+") and driver != "postgresql+asyncpg"
    ):
        url = url.set(drivername="postgresql+asyncpg")

    if url.drivername == "postgresql+asyncpg":
        query = dict(url.query)
        sslmode = query.pop("sslmode", None)
        if sslmode is not None:
            translated = _translate_sslmode(sslmode)
            if translated is not None:
                query["ssl"] = translated
        if query != url.query:
            url = url.set(query=query)

    return url.render_as_string(hide_password=False)


def _railway_env_database_url(env: Mapping[str, str]) -> Optional[str]:
    """Construct a Postgres URL from PG* env vars (Railway, Supabase pooler, docker-compose)."""

    host = env.get("PGHOST")
    database = env.get("PGDATABASE")
    user = env.get("PGUSER")

    if not (host and database and user):
        return None

    query: dict[str, str] = {}
    sslmode = env.get("PGSSLMODE")
    if sslmode:
        translated = _translate_sslmode(sslmode)
        if translated is not None:
            query["ssl"] = translated

    try:
        port = int(env["PGPORT"]) if env.get("PGPORT") else None
    except ValueError:
        port = None

    return URL.create(
        drivername="postgresql+asyncpg",
        username=user,
        password=env.get("PGPASSWORD") or None,
        host=host,
        port=port,
        database=database,
        query=query or {},
    ).render_as_string(hide_password=False)


def _database_url_from_env(env: Mapping[str, str]) -> Optional[str]:
    """Resolve the preferred database URL from environment variables."""

    for raw in (env.get("DATABASE_URL"), env.get("POSTGRES_URL")):
        normalized = _normalize_database_url(raw)
        if normalized:
            return _apply_pgsslmode(normalized, env.get("PGSSLMODE"))

    return _railway_env_database_url(env)


def _apply_pgsslmode(database_url: str, sslmode: Optional[str]) -> str:
    """PGSSLMODE only fills in an ssl flag the URL itself does not set."""

    if not sslmode:
        return database_url
    url = make_url(database_url)
    if url.drivername != "postgresql+asyncpg" or "ssl" in url.query:
        return database_url
    translated = _translate_sslmode(sslmode)
    if translated is None:
        return database_url
    return url.update_query_dict({"ssl": translated}).render_as_string(hide_password=False)


DEFAULT_SQLITE_URL: str = _default_db_url()
DATABASE_URL: str = _database_url_from_env(os.environ) or DEFAULT_SQLITE_URL

ECHO = os.getenv("SQLALCHEMY_ECHO", "0").lower() in {"1", "true", "yes"}


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=ECHO,
        pool_pre_ping=True,
    )


def build_session_factory(bind_engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=bind_engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


Base = declarative_base()

engine: AsyncEngine
SessionLocal: sessionmaker
CURRENT_DATABASE_URL: str


def configure_engine(database_url: str) -> None:
    """(Re)configure the global engine/session factory pair.

    Startup uses this to fall back to the bundled SQLite file when the
    configured Postgres never comes up and the fallback is allowed.
    """

    global engine, SessionLocal, CURRENT_DATABASE_URL

    engine = build_engine(database_url)
    SessionLocal = build_session_factory(engine)
    CURRENT_DATABASE_URL = database_url


configure_engine(DATABASE_URL)


async def get_db():
    """FastAPI dependency that yields an AsyncSession."""

    async with SessionLocal() as session:
        yield session


async def create_schema(bind_engine: AsyncEngine) -> None:
    """Create all tables on ``bind_engine`` and apply the idempotent upgrades."""

    import app.models  # noqa: F401  registers every mapped class
    from app.schema_upgrades import apply_schema_upgrades

    async with bind_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await apply_schema_upgrades(conn)


async def init_models() -> None:
    """Run once on startup; safe against an existing database."""

    await create_schema(engine)


def dialect_insert(db: AsyncSession, table):
    """INSERT that supports ``on_conflict_do_nothing`` on the session's backend."""

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"INSERT ... ON CONFLICT not supported on {dialect}")
