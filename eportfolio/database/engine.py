"""Database engine and session management."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config.settings import DatabaseSettings
from ..models import Base

logger = structlog.get_logger(__name__)


class Database:
    """Owns the async engine and session factory for one application instance."""

    def __init__(self, settings: DatabaseSettings, engine: Optional[AsyncEngine] = None):
        self.settings = settings
        self.engine = engine or self._create_engine(settings)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database engine created", dialect=self.engine.dialect.name)

    @staticmethod
    def _create_engine(settings: DatabaseSettings) -> AsyncEngine:
        options = {
            "echo": settings.echo,
            "pool_pre_ping": True,
        }
        # SQLite pools do not accept sizing arguments.
        if not settings.url.startswith("sqlite"):
            options.update(
                pool_size=settings.pool_size,
                max_overflow=settings.max_overflow,
                pool_recycle=3600,
            )
        return create_async_engine(settings.url, **options)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def reconnect(self) -> None:
        """Drop pooled connections so the next checkout opens a fresh one."""
        await self.engine.dispose()
        logger.warning("Database connection pool reset")

    async def init_models(self) -> None:
        """Initialize the database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database tables created")

    async def close(self) -> None:
        """Close the database connections."""
        await self.engine.dispose()
        logger.info("Database connections closed")
