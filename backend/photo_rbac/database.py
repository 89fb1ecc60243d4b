from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .config import Settings
from .models.base import Base


def _is_memory_url(url: str) -> bool:
    database = make_url(url).database
    return not database or database == ":memory:"


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.database_url``.

    SQLite does not take the pool sizing options, so they are only passed
    for server databases.
    """
    options: dict = {"echo": settings.debug, "future": True}
    if settings.is_sqlite:
        if _is_memory_url(settings.database_url):
            # One shared connection, or every checkout sees an empty database
            options.update(poolclass=StaticPool)
    else:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=settings.db_pool_pre_ping,
        )
    return create_async_engine(settings.database_url, **options)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: grants are handed back to callers after commit
    # and read outside the session. Re-query for fresh state.
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_all(engine: AsyncEngine) -> None:
    """Create every mapped table. Used for SQLite setups and tests."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database_connection(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
