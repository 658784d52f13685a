"""Engine, session factory and schema bootstrap for the collector store.

SQLite under DATA_PATH by default, PostgreSQL (asyncpg) when DATABASE_URL is set.
"""
import logging
import os
from sqlalchemy import event, inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import settings, get_database_url, is_postgresql

logger = logging.getLogger(__name__)

# Determine database type
_is_postgres = is_postgresql()
_database_url = get_database_url()


def configure_sqlite(sqlite_engine: AsyncEngine):
    """Install per-connection SQLite settings on an async engine.

    aiosqlite's implicit BEGIN is disabled and emitted explicitly instead,
    otherwise SAVEPOINT / ROLLBACK TO do not nest inside the outer transaction.
    """

    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # Readers (the API) do not block the report writer
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    @event.listens_for(sqlite_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


# Pool settings per backend; each in-flight report holds one connection
_POOL_OPTIONS = {
    "postgresql": {"pool_size": 10, "max_overflow": 20, "pool_recycle": 3600},
    "sqlite": {"pool_size": 5, "max_overflow": 10, "connect_args": {"timeout": 30}},
}


def build_engine(url: str, postgres: bool) -> AsyncEngine:
    """Create the async engine for a collector database URL."""
    backend = "postgresql" if postgres else "sqlite"
    new_engine = create_async_engine(url, pool_pre_ping=True, **_POOL_OPTIONS[backend])
    if not postgres:
        configure_sqlite(new_engine)
    logger.info(f"Using {backend} database")
    return new_engine


engine = build_engine(_database_url, _is_postgres)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncSession:
    """FastAPI dependency yielding a session for read endpoints."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Initialize database - create tables and ensure data directory exists."""
    # Register all tables on Base.metadata
    from . import models  # noqa: F401

    # Ensure data directory exists for SQLite
    if not _is_postgres:
        os.makedirs(settings.data_path, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

        # Run migrations for existing databases
        await _run_migrations(conn)


# Host columns introduced after the first schema revision
_HOST_LATER_COLUMNS = {
    "description": "TEXT DEFAULT ''",
    "username": "TEXT DEFAULT ''",
    "password": "TEXT DEFAULT ''",
    "status_heartbeat": "BIGINT DEFAULT 0",
}


async def _run_migrations(conn):
    """Add columns missing from databases created with an older schema.

    Inspects the live table instead of relying on ADD COLUMN IF NOT EXISTS,
    which SQLite does not support.
    """

    def _host_columns(sync_conn) -> set:
        return {column["name"] for column in inspect(sync_conn).get_columns("host")}

    existing = await conn.run_sync(_host_columns)
    for column, ddl in _HOST_LATER_COLUMNS.items():
        if column in existing:
            continue
        await conn.execute(text(f"ALTER TABLE host ADD COLUMN {column} {ddl}"))
        logger.info(f"Migrated host table: added column {column}")


async def close_db():
    """Close database connections."""
    await engine.dispose()
