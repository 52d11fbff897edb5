"""
Database Connection Management

Async SQLAlchemy 2.0 engine lifecycle: creation with a connectivity check,
schema bootstrap and graceful disposal.
"""

from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from liveops.config import get_settings
from liveops.database.models import Base

logger = structlog.get_logger(__name__)

# Global engine
_engine: Optional[AsyncEngine] = None


def create_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    """
    Build an async engine for ``url``.

    In-memory SQLite gets a StaticPool so every session shares the one
    database; other backends use NullPool and leave pooling to the driver.
    """
    engine_config = {
        "echo": echo,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite") and ":memory:" in url:
        engine_config.update({
            "poolclass": StaticPool,
        })
    else:
        engine_config.update({
            "poolclass": NullPool,
        })

    return create_async_engine(url, **engine_config)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all service tables that do not exist yet"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured", tables=sorted(Base.metadata.tables))


async def init_database(create_tables: bool = False) -> AsyncEngine:
    """
    Initialize the database engine.

    Args:
        create_tables: Also create missing tables (local/dev bootstrap)

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    _engine = create_engine_from_url(settings.database.async_url, echo=settings.database.echo)

    # Verify connection
    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Database connection established",
            dialect=_engine.dialect.name,
            host=settings.database.host,
            database=settings.database.db,
        )
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        await _engine.dispose()
        _engine = None
        raise

    if create_tables:
        await create_schema(_engine)

    return _engine


async def close_database() -> None:
    """
    Close the database connection pool.

    Gracefully closes all connections in the pool.
    """
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("Database connection pool closed")
