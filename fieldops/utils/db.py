"""Database connection and session management."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fieldops.config import get_settings
from fieldops.utils.errors import FatalError

settings = get_settings()
logger = logging.getLogger(__name__)

# Connectivity failures abort the operation as a whole
STORE_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, OSError)

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
    echo=False,
    future=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session that commits on success and rolls back on any error.

    Store connectivity errors are re-raised as FatalError so the transport
    layer answers 503 instead of a generic 500.
    """
    async with (factory or async_session_factory)() as session:
        try:
            yield session
            await session.commit()
        except STORE_UNAVAILABLE_ERRORS as e:
            await session.rollback()
            logger.error(f"Store unavailable: {type(e).__name__}: {e}")
            raise FatalError() from e
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session.

    Usage:
        @router.get("/emergencies/active")
        async def list_active(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with session_scope() as session:
        yield session


async def init_db() -> None:
    """Initialize database connection pool."""
    async with engine.begin() as conn:
        await conn.run_sync(lambda _: None)


async def close_db() -> None:
    """Close database connection pool."""
    await engine.dispose()
