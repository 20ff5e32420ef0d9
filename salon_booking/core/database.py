from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from salon_booking.core.config import settings

logger = structlog.get_logger(__name__)

Base = declarative_base()


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Async engine for ``database_url``, defaulting to ``DATABASE_URL``."""
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Committed appointments are still read after commit
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine()
AsyncSessionLocal = create_session_factory(engine)


async def init_db(
    bind: Optional[AsyncEngine] = None, create_tables: bool = False
) -> None:
    """Check the connection and optionally create every booking table."""
    # Registers every table on Base.metadata
    import salon_booking.models  # noqa: F401

    bind = bind or engine
    try:
        async with bind.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database connection initialized successfully",
            tables_created=create_tables,
        )
    except Exception as e:
        logger.error("Failed to initialize database", exc_info=e)
        raise


async def get_db() -> AsyncIterator[AsyncSession]:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", exc_info=e)
            raise
