from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from crm_auth.config import Settings
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the async engine for the configured database."""
    if settings.database_url.startswith("sqlite"):
        # SQLite has no server-side pool to size
        return create_async_engine(settings.database_url, echo=False)

    # Environment-based configurations
    if settings.environment == "production":
        return create_async_engine(
            settings.database_url,
            pool_size=20,
            max_overflow=50,
            pool_timeout=60,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables. Used for development and tests; production runs Alembic."""
    # Register every mapped class on Base.metadata
    import crm_auth.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")

