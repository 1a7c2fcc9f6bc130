"""Database connection and session management."""
from typing import Any, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from coinpayments_gateway.config import Settings, get_settings
from coinpayments_gateway.database.models import Base

logger = structlog.get_logger(__name__)


class Database:
    """
    Owns the engine (connection pool) and session factory.

    Constructed once per process by the application factory and passed to
    whatever needs storage access. The engine is created lazily on first
    use and released by ``close()``.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """
        Initialize database holder.

        Args:
            settings: Optional settings (uses cached settings if not provided)
        """
        self.settings = settings or get_settings()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """
        Get or create the database engine.

        Returns:
            AsyncEngine: SQLAlchemy async engine instance
        """
        if self._engine is None:
            engine_kwargs: dict[str, Any] = {
                "echo": self.settings.database_echo,
                "pool_pre_ping": True,
            }
            if not self.settings.is_sqlite:
                engine_kwargs.update(
                    pool_size=self.settings.database_pool_size,
                    max_overflow=self.settings.database_max_overflow,
                    pool_recycle=3600,
                    connect_args=self.settings.database_connect_args,
                )
            self._engine = create_async_engine(self.settings.async_database_url, **engine_kwargs)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """
        Get or create the session factory.

        Returns:
            async_sessionmaker: SQLAlchemy async session factory
        """
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_factory

    async def init_db(self) -> None:
        """
        Initialize database tables.

        Creates the payments table if it doesn't exist.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready", tables=sorted(Base.metadata.tables))

    async def ping(self) -> None:
        """Run a trivial query to prove connectivity."""
        async with self.session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()

    async def close(self) -> None:
        """Close database connections and dispose of the engine."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
