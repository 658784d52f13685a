"""Pytest configuration and fixtures for collector tests."""

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from collector.database import Base, configure_sqlite
from collector.schemas.report import HostDescriptor
from collector.services.ingestion import IngestionService
from collector import models  # noqa: F401


@pytest_asyncio.fixture
async def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    configure_sqlite(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def ingestion(session_factory):
    """Ingestion service writing to the test database."""
    return IngestionService(session_factory=session_factory)


@pytest.fixture
def host_descriptor():
    return HostDescriptor(
        localhostname="web-1",
        monit_id="abc123",
        incarnation=1,
        control_file="/etc/monit/monitrc",
    )


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a model in a fresh session."""

    async def _count(model) -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar()

    return _count
