# storefront/db/database.py (async)
from contextlib import asynccontextmanager
from typing import AsyncIterator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy import event
from storefront.core.config import settings
import logging
import time

Base = declarative_base()


def async_database_url(url: str) -> str:
    """Convert a plain postgresql:// URL to the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str = None) -> AsyncEngine:
    """Create an async engine with pooling configuration."""
    database_url = async_database_url(url or settings.DATABASE_URL)
    pool_options = {}
    if not database_url.startswith("sqlite"):
        pool_options = {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": settings.DB_POOL_PRE_PING,
        }
    engine = create_async_engine(database_url, future=True, echo=False, **pool_options)
    _setup_slow_query_logging(engine)
    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _setup_slow_query_logging(engine: AsyncEngine):
    logger = logging.getLogger("sqlalchemy.slow")

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def before_cursor(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def after_cursor(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get("query_start_time")
        if not start_times:
            return
        start_time = start_times.pop(-1)
        duration_ms = (time.time() - start_time) * 1000
        if duration_ms >= settings.SLOW_QUERY_THRESHOLD_MS:
            logger.warning(
                "Slow query detected",
                extra={
                    "duration_ms": duration_ms,
                    "statement": statement,
                },
            )


async def create_tables(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Scoped unit of work: commits when the block exits normally and rolls back
    on any exception, including early exits via raise.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise


async def get_db(request: Request):
    # The sessionmaker lives on app.state; the session is closed on every exit path
    async with request.app.state.sessionmaker() as session:
        yield session
