"""
Database session management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)
from sqlalchemy.pool import NullPool
from core.config import settings
from models.base import Base
import logging

logger = logging.getLogger(__name__)


def create_engine(database_url: str = None) -> AsyncEngine:
    """Create async engine for the metadata database"""
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=False,
        poolclass=NullPool,  # Workers and API open short-lived sessions
        future=True
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Create session factory bound to an engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


async def create_all(engine: AsyncEngine):
    """Create all tables registered on the declarative base"""
    # Import models so they register on Base.metadata
    import models.upload  # noqa: F401
    import models.dataset  # noqa: F401
    import models.usage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
