# academy/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlalchemy import text
import logging

from .config import Settings, settings

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"55P03", "40001", "40P01"}


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine for the configured database URL"""
    if config.database_url.startswith("postgresql"):
        return create_async_engine(
            config.database_url,
            poolclass=AsyncAdaptedQueuePool,
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_timeout=config.db_pool_timeout,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=False,
            connect_args={
                "server_settings": {
                    "application_name": "weekend_academy_api",
                    "statement_timeout": config.db_statement_timeout,
                    "idle_in_transaction_session_timeout": "60s",
                    # Capacity writers wait on session row locks at most this long
                    "lock_timeout": config.db_lock_timeout,
                }
            }
        )
    return create_async_engine(config.database_url, echo=False)


engine = build_engine(settings)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
    autoflush=False,
)

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for API requests with proper error handling"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()


def is_lock_contention(exc: DBAPIError) -> bool:
    """True when the store gave up waiting for a lock or aborted a conflicting transaction"""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    return "database is locked" in str(orig or exc).lower()


async def health_check_db() -> bool:
    """Fast health check"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db_connections():
    """Properly close all database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
