"""Alembic environment for the flow-state store.

Online migrations reuse the runtime asyncpg engine setup, so only one
PostgreSQL driver is installed.  Offline mode renders SQL for
``get_sync_url()``.  Revisions are tracked in ``dental_flow_alembic_version``
so the store can share a database with other applications' migrations, and
autogenerate only looks at this package's tables.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from dental_flow_db.config import get_async_url, get_pool_settings, get_sync_url
from dental_flow_db.engine import connect_args
from dental_flow_db.models.base import Base

# Register tables on Base.metadata for autogenerate.
import dental_flow_db.models.flow_state  # noqa: F401

VERSION_TABLE = "dental_flow_alembic_version"

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    # Reflected tables that belong to someone else are left alone.
    if type_ == "table" and reflected and compare_to is None:
        return name in target_metadata.tables
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        include_object=include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    _configure(
        url=get_sync_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Connect through asyncpg and apply revisions."""
    # DDL on a large table can outlast the request statement timeout.
    args = connect_args(get_pool_settings())
    args["server_settings"].pop("statement_timeout", None)
    engine = create_async_engine(get_async_url(), poolclass=NullPool, connect_args=args)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
