"""
Job store engine and sessions.

The only persisted state is the ``jobs`` table written by JobTracker.  The
engine is created from ``settings.DATABASE_URL`` (PostgreSQL via asyncpg in
production, SQLite via aiosqlite in tests) and disposed on shutdown once
background jobs have stopped.
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator
import logging

from app.config import settings

logger = logging.getLogger(__name__)

# Background jobs and request handlers each open short sessions; no pooled
# connection is ever shared between them
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
    poolclass=NullPool,
)

# Committed rows stay readable without another round trip
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session; commits on success, rolls back on error.

    Example:
        @router.get("/jobs/{job_id}/raw")
        async def raw_job(job_id: str, db: AsyncSession = Depends(get_db)):
            job = await db.get(Job, job_id)
            return {"status": job.status.value, "progress": job.progress}
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Job store session error: {e}")
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create the jobs table if missing; raises when the store is unreachable."""
    try:
        async with engine.begin() as conn:
            # Registers Job on Base.metadata
            from app.models import database_models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
            logger.info("Job store ready (%s)", engine.url.get_backend_name())

    except Exception as e:
        logger.error(f"Job store initialisation failed: {e}")
        raise


async def close_db() -> None:
    """Dispose the engine; call after JobManager.shutdown()."""
    try:
        await engine.dispose()
        logger.info("Job store connections closed")
    except Exception as e:
        logger.error(f"Error closing job store: {e}")
        raise
