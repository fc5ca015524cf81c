"""
Database session management.
Provides the async SQLAlchemy engine, session factory, and lifecycle functions.

A Database instance is created once at application startup, kept on the
application state, and disposed at shutdown.
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from app.core.config import Settings, get_settings
from app.database.base import Base


class Database:
    """Owns one async engine and the session factory bound to it."""

    def __init__(self, database_url: str, settings: Optional[Settings] = None):
        self.database_url = database_url
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def init(self) -> None:
        """
        Create the engine and session factory.
        Called once at application startup.
        """
        engine_kwargs = {"echo": self._settings.database_echo}
        # SQLite uses a static/singleton pool and rejects pool sizing options
        if not self.database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=self._settings.database_pool_size,
                max_overflow=self._settings.database_max_overflow,
                pool_timeout=self._settings.database_pool_timeout,
            )

        self._engine = create_async_engine(self.database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_tables(self) -> None:
        """Create all tables directly (local development and tests; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """
        Close the database engine and cleanup resources.
        Called once at application shutdown.
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._session_factory

