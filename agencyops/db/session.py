"""SQLAlchemy async session setup for AgencyOps.

Provides:
- Base: DeclarativeBase for all ORM models
- build_engine: async engine for a database URL (asyncpg or aiosqlite)
- engine / async_session_factory: process-wide instances from settings
- get_async_session: FastAPI dependency with Unit-of-Work commit/rollback
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from agencyops.config.settings import Environment, Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all AgencyOps ORM rows."""


def build_engine(settings: Settings) -> AsyncEngine:
    """Async engine for ``settings.DATABASE_URL``.

    SQLite files skip connection pre-ping; Postgres pools are checked
    before use so a restarted database does not fail the first request.
    """
    url = make_url(settings.DATABASE_URL)
    options: dict = {"echo": settings.ENVIRONMENT == Environment.DEV}
    if url.get_backend_name() != "sqlite":
        options["pool_pre_ping"] = True
    return create_async_engine(url, **options)


engine = build_engine(get_settings())

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request.

    Repositories only add/flush/refresh. The request's changes are
    committed together at the end; any exception rolls all of them back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back request session")
            await session.rollback()
            raise
