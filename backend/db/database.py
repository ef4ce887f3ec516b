"""
Database configuration and session management.

SQLite vs PostgreSQL Compatibility Notes:
-----------------------------------------
SQLite is used for development and tests, PostgreSQL in production.
The conditional writes issued by the services are plain
``UPDATE ... WHERE id = :id AND version = :v`` statements, which both
databases evaluate atomically per row.

Limitations:
- SQLite has limited concurrent write support (single writer at a time);
  a competing writer waits on the busy timeout and may surface
  "database is locked" as OperationalError.
- SQLite stores DateTime(timezone=True) values without the offset, so
  timestamps read back are naive UTC.
"""

import logging

from config import get_settings
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

settings = get_settings()
logger = logging.getLogger(__name__)

database_url = settings.async_database_url
is_sqlite = database_url.startswith("sqlite")

engine_kwargs: dict = {
    "echo": False,
}

if not is_sqlite:
    # pool_pre_ping: Verify connections are alive before using them.
    # Total max connections = pool_size + max_overflow = 15
    engine_kwargs["pool_pre_ping"] = True
    engine_kwargs["pool_size"] = 5
    engine_kwargs["max_overflow"] = 10

engine = create_async_engine(database_url, **engine_kwargs)


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite does not enforce foreign keys by default - must be enabled per connection."""
    from sqlalchemy import event as sa_event

    @sa_event.listens_for(async_engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if is_sqlite:
    enable_sqlite_foreign_keys(engine)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Dependency that yields a database session.

    The services commit their own unit of work; anything still pending
    when the request fails is rolled back here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create all tables that do not exist yet."""
    # Import models so they register on Base.metadata
    from models import album, band, country, event, member, song, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    logger.info("Database initialized successfully")
