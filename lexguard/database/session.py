"""Async engine and request-scoped sessions for the corpus database.

Corpus lookups are read-only. Generated batches and trap exercises are
committed by their repositories; anything left uncommitted when a handler
raises is rolled back by ``get_db``.
"""

from collections.abc import AsyncGenerator

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..core.config import settings

logger = structlog.get_logger()


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create the asyncpg engine from settings."""
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


engine = build_engine()

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request and roll back uncommitted work on error.

    Yields:
        AsyncSession: Session shared by every repository of the request

    Example:
        @router.post("/batches")
        async def create_batch(db: AsyncSession = Depends(get_db)):
            repository = CorpusRepository(db=db)
            topic = await repository.get_topic(topic_id)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            logger.warning("db_session_rollback")
            await session.rollback()
            raise
