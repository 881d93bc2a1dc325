"""
Application Cache Database
Async SQLite store for applications handed to the workflow engine
"""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from loguru import logger

from kyc_onboarding.config import settings


# One shared connection, so an in-memory cache survives across sessions
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()


async def init_db():
    """Create the application cache table if it does not exist yet"""
    from kyc_onboarding.models import application  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Application cache ready at {settings.DATABASE_URL}")


async def close_db():
    await engine.dispose()
    logger.info("Application cache connections closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped cache session"""
    async with AsyncSessionLocal() as session:
        yield session
