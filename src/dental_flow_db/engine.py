"""Async SQLAlchemy engine and session factory.

Both are created lazily and shared for the process lifetime; the server
calls ``dispose_engine()`` on shutdown.  Connections identify themselves as
``dental-flow`` in ``pg_stat_activity`` and carry a statement timeout.  Pooled
connections are pinged before reuse.
"""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from dental_flow_db.config import (
    APPLICATION_NAME,
    PoolSettings,
    get_async_url,
    get_pool_settings,
)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def connect_args(settings: PoolSettings) -> dict[str, Any]:
    """asyncpg ``server_settings`` applied to every new connection."""
    server_settings = {"application_name": APPLICATION_NAME}
    if settings.statement_timeout_ms:
        server_settings["statement_timeout"] = str(settings.statement_timeout_ms)
    return {"server_settings": server_settings}


def build_engine(url: str, settings: PoolSettings) -> AsyncEngine:
    return create_async_engine(
        url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_recycle=settings.recycle_seconds,
        pool_pre_ping=True,
        connect_args=connect_args(settings),
    )


def get_engine() -> AsyncEngine:
    """Return (and lazily create) the singleton async engine."""
    global _engine
    if _engine is None:
        _engine = build_engine(get_async_url(), get_pool_settings())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


async def dispose_engine() -> None:
    """Close pooled connections and forget the singletons."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
