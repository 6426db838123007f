import logging
from typing import Optional

from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from ledger_api import config

logger = logging.getLogger(__name__)

Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Returns the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        if not config.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set")

        kwargs = {"echo": config.DB_ECHO, "future": True}
        if config.DATABASE_URL.startswith("postgresql+asyncpg"):
            kwargs["connect_args"] = {"statement_cache_size": 0}
        if config.DB_USE_NULLPOOL:
            kwargs["poolclass"] = NullPool

        _engine = create_async_engine(config.DATABASE_URL, **kwargs)
        logger.info(f"Database engine created for {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _session_factory


async def dispose_engine():
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


async def get_db():
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()
