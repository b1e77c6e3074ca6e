import logging

from sqlalchemy import NullPool, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from listing_api.config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def normalize_database_url(url: str) -> str:
    """Force an async driver on plain postgres/sqlite URLs"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine(settings: Settings) -> AsyncEngine:
    url = normalize_database_url(settings.DATABASE_URL)
    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        # In-memory SQLite only lives as long as its single connection
        if ":memory:" in url or url.rstrip("/").endswith("+aiosqlite:"):
            return create_async_engine(
                url,
                echo=settings.DB_ECHO,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(url, echo=settings.DB_ECHO, poolclass=NullPool)

    if settings.DEBUG:
        # No pool in debug mode
        return create_async_engine(url, echo=settings.DB_ECHO, poolclass=NullPool)

    return create_async_engine(
        url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine):
    """Initialize database - create tables if not exist"""
    # Register the table on Base.metadata
    from listing_api.models.document import DocumentRow  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_db(engine: AsyncEngine):
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")


async def check_db_connection(engine: AsyncEngine) -> bool:
    """Check if database is healthy"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
