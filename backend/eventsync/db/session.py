"""
Async engine and session factory for the local SQLite cache.

Foreign keys are off by default in SQLite; every connection turns them on so
ON DELETE CASCADE is enforced by the database as well as by the ORM.
"""

from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from eventsync.core.config import get_settings
from eventsync.db.base import Base


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def create_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    settings = get_settings()
    url = database_url or settings.DATABASE_URL
    engine = create_async_engine(
        url,
        echo=settings.DB_ECHO if echo is None else echo,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create cache tables if they do not exist yet."""
    # Import models so they register on Base.metadata
    import eventsync.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
