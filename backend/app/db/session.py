"""
Async engine, session factory and the transaction boundary helper.

The AsyncSession is the transaction handle of this service: it is created
per request by `get_db` and passed explicitly through service, detector and
repository calls. Row locks taken with SELECT ... FOR UPDATE are held until
`transaction()` commits or rolls back.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit on success, roll back on any exception.

    Nothing written inside the block is visible to other transactions
    unless the whole block succeeds.
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
