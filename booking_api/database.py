"""Database configuration and connection management."""

from collections.abc import AsyncGenerator
from typing import Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from booking_api.config import settings

logger = structlog.get_logger(__name__)


def to_async_url(url: str) -> str:
    """Swap a sync driver URL for its async counterpart."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def build_engine(url: str, echo: bool = False, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine for PostgreSQL or SQLite.

    SQLite gets foreign keys switched on per connection; PostgreSQL gets a
    connection pool sized for the API process.
    """
    async_url = to_async_url(url)
    backend = make_url(async_url).get_backend_name()

    if backend == "sqlite":
        engine = create_async_engine(
            async_url,
            echo=echo,
            connect_args={"timeout": 30},
            **kwargs,
        )

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
            """Enable foreign key enforcement on SQLite connections."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_options: dict[str, Any] = {}
    if "poolclass" not in kwargs:
        pool_options = {"pool_size": 10, "max_overflow": 20, "pool_recycle": 3600}

    return create_async_engine(
        async_url,
        echo=echo,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
        **pool_options,
        **kwargs,
    )


engine: AsyncEngine = build_engine(settings.database_url, echo=settings.debug)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("database_health_check_failed", error=str(e))
        return False
