"""Async SQLAlchemy engine and session factory for the audit log."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from authgw.core.settings import DatabaseSettings


class _EngineHolder:
    """Lazy singleton for the PostgreSQL engine and its session factory."""

    engine: AsyncEngine | None = None
    factory: async_sessionmaker[AsyncSession] | None = None


_holder = _EngineHolder()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide audit session factory.

    Creating the engine does not connect; the first audit write does.
    """
    if _holder.factory is None:
        db = DatabaseSettings()
        _holder.engine = create_async_engine(
            db.async_url,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_pre_ping=True,
        )
        _holder.factory = async_sessionmaker(
            _holder.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _holder.factory


async def dispose_engine() -> None:
    """Close pooled connections; the next get_session_factory() starts fresh."""
    engine = _holder.engine
    _holder.engine = None
    _holder.factory = None
    if engine is not None:
        await engine.dispose()
