"""
Database engine and sessions.

One async engine per process. Web requests get their session through
``get_db``; scheduled jobs open theirs with ``session_scope``.
"""

from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from carpool_backend.app.core.config import settings


def engine_options(database_url: str) -> dict:
    """Engine keyword arguments for a URL. Pool sizing only applies to server databases."""
    options = {"echo": settings.db_echo}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Proofs stay usable after commit: responses and reports read them afterwards
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Work left uncommitted by a failed request is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def session_scope(session_factory=None):
    """Session for jobs: committed when the block succeeds, rolled back otherwise."""
    async with (session_factory or AsyncSessionLocal)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
