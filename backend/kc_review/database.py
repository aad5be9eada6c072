"""Async engine and session factory."""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from kc_review.config import Settings, settings


def create_engine(config: Settings) -> AsyncEngine:
    return create_async_engine(
        config.database_url,
        echo=config.database_echo,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps returned proposals readable after the transaction closes.
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = create_engine(settings)
async_session_factory = create_session_factory(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory
