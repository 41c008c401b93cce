"""Database connection and session management.

The engine is owned by a ``Database`` object that the application builds in
its lifespan and keeps on ``app.state``.  Request handlers receive sessions
through the ``get_db`` dependency; nothing imports a module-level engine.
"""
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import Settings
from .models.base import Base


class Database:
    """Process-scoped handle around an async engine and its session factory."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build the engine described by the application settings."""
        # Enforce SSL for database connections in production
        connect_args = {"ssl": "require"} if settings.is_production else {}
        engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=10,
            pool_recycle=3600,
            connect_args=connect_args,
        )
        return cls(engine)

    async def create_all(self) -> None:
        """Create tables directly (development only; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency yielding a session from the application's Database."""
    database: Database = request.app.state.database
    async with database.session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
