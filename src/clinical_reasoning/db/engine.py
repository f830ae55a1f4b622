"""Async engine and session factory built from application settings."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from clinical_reasoning.config import Settings, get_settings
from clinical_reasoning.db.models import Base


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """
    Create an async engine for the configured database.

    Args:
        settings: Application settings. Uses get_settings() if None.

    Returns:
        Engine bound to ``settings.database_url``; SQL is echoed in debug mode.
    """
    settings = settings or get_settings()
    return create_async_engine(settings.database_url, echo=settings.debug)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay usable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
