"""
Database Connection Module
Handles the relational store connection using the SQLAlchemy async engine.
"""

import logging
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from hotel_billing.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# PostgreSQL pools connections; SQLite (tests, quick local runs) does not take pool sizes
_engine_options = {"echo": settings.database_echo}
if not settings.database_url.startswith("sqlite"):
    _engine_options.update(pool_size=5, max_overflow=10)

engine = create_async_engine(settings.database_url, **_engine_options)

# Session factory - creates new database sessions
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False  # Objects remain accessible after commit
)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    # Register the models on Base.metadata
    from hotel_billing import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")
