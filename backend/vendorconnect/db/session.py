"""Async engine and session factory for job runs."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from vendorconnect.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    """Pooled engine for the configured database; SQL echo follows ``debug``."""
    return create_async_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=settings.database_pool_timeout,
        pool_pre_ping=True,
        echo=settings.debug,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit; flushes are explicit."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(get_settings())
async_session_factory = build_session_factory(engine)


async def close_db() -> None:
    """Dispose pooled connections; the next run opens fresh ones."""
    await engine.dispose()
