import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from articlefeed.cache import cache
from articlefeed.config import settings
from articlefeed.middleware import install_query_counter

logger = logging.getLogger(__name__)

# Dialects whose INSERT supports ON CONFLICT DO NOTHING.
_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class Base(DeclarativeBase):
    pass


def build_engine(url: str, **overrides) -> AsyncEngine:
    """Create an async engine for *url* with the statement counter attached."""
    options = {"echo": settings.SQL_ECHO, "pool_pre_ping": True}
    if not url.startswith("sqlite") and "poolclass" not in overrides:
        options.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
    options.update(overrides)
    built = create_async_engine(url, **options)
    install_query_counter(built)
    return built


engine = build_engine(settings.DATABASE_URL)
async_session = async_sessionmaker(engine, expire_on_commit=False)


async def insert_edge(db: AsyncSession, table: Table, **values) -> bool:
    """
    Insert one association row unless its primary key already exists.

    A single ``INSERT ... ON CONFLICT DO NOTHING``: concurrent attaches of
    the same edge both succeed and leave one row.  Returns True when this
    call wrote the row.
    """
    dialect = db.get_bind().dialect.name
    stmt = _CONFLICT_INSERTS[dialect](table).values(**values).on_conflict_do_nothing()
    result = await db.execute(stmt)
    return result.rowcount == 1


@asynccontextmanager
async def transaction(factory: async_sessionmaker = async_session) -> AsyncIterator[AsyncSession]:
    """
    One unit of work: commit on success, roll back on any error.

    Article details marked stale during the unit are dropped from the
    cache again after the commit, so a read that re-cached the old row
    in the meantime does not outlive it.
    """
    async with factory() as session:
        try:
            yield session
        except Exception as exc:
            logger.debug("Rolling back session after %s", type(exc).__name__)
            await session.rollback()
            raise
        else:
            await session.commit()
            await cache.flush_stale(session)


async def get_db():
    """Request-scoped session; services only flush, the request owns the commit."""
    async with transaction() as session:
        yield session
