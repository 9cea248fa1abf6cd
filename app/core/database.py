# app/core/database.py
from typing import AsyncIterator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from app.core.config import settings
from app.models.base import Base

database_url = settings.DATABASE_URL


def _engine_options(url: str) -> dict:
    options = {
        "echo": settings.DATABASE_ECHO,
        "future": True,
        "pool_pre_ping": True,
    }
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            pool_timeout=settings.DATABASE_POOL_TIMEOUT,
            pool_recycle=3600,  # Recycle connections every hour
        )
    return options


def use_immediate_transactions(async_engine: AsyncEngine) -> None:
    """Make SQLite take its write lock when a transaction begins.

    SQLite has no row locks, so a deferred transaction that reads a stock
    row and then writes it fails with "database is locked" when another
    writer got there first. BEGIN IMMEDIATE queues writers instead.
    """
    @event.listens_for(async_engine.sync_engine, "connect")
    def disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_async_engine(database_url, **_engine_options(database_url))

if database_url.startswith("sqlite") and ":memory:" not in database_url:
    use_immediate_transactions(engine)

async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncIterator[AsyncSession]:
    async with async_session_maker() as session:
        yield session


async def create_all_tables() -> None:
    """Create tables for local development (migrations own production schema)"""
    import app.models  # noqa: F401  register mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = ["Base", "engine", "async_session_maker", "get_async_session", "create_all_tables", "use_immediate_transactions"]
