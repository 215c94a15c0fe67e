"""Shared pytest fixtures for database-backed integration tests."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from app.core.database import Base
from app.features.documents import SqlDocumentStore
from app.features.documents.models import StoredDocument  # noqa: F401


@pytest.fixture
async def session_maker():
    """Create the document table and yield a session factory.

    Requires PostgreSQL to be running (docker-compose up -d). Tables are
    dropped afterwards.
    """
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def sql_store(session_maker) -> SqlDocumentStore:
    """SQL document store over the test database."""
    return SqlDocumentStore(session_maker)
