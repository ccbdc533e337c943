"""
Database connection and session management
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import DateTime, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from resume_pipeline.core.config import settings

logger = structlog.get_logger()

# Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes so they compare with aware ones"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always round-trips as UTC (SQLite drops tzinfo)"""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        return ensure_utc(value)


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """Create the async engine shared by request handlers and the queue worker"""
    url = database_url or settings.DATABASE_URL
    kwargs = {"echo": settings.DEBUG if echo is None else echo, "pool_pre_ping": True}
    if not is_sqlite(url):
        kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW

    engine = create_async_engine(url, **kwargs)

    if is_sqlite(url):
        _configure_sqlite(engine)

    logger.info("database_engine_created", dialect=engine.dialect.name)
    return engine


def _configure_sqlite(engine: AsyncEngine) -> None:
    # pysqlite's implicit transactions never take the write lock up front; emit
    # BEGIN IMMEDIATE ourselves so concurrent writers serialize
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the given engine"""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables"""
    # Import models so they register on Base.metadata
    from resume_pipeline import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized")


@asynccontextmanager
async def transaction(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """Per-unit-of-work transaction scope.

    Yields a fresh session. Commits on success, rolls back on exception,
    always closes.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

