"""Connection settings for the flow-state store.

The URL comes from ``DATABASE_URL`` when set, otherwise from the ``PG_HOST``,
``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE`` parts.  Hosting
platforms hand out ``postgres://`` URLs, so any PostgreSQL scheme is accepted
and rewritten for the driver that needs it:

  - ``get_async_url()``  ``postgresql+asyncpg://`` for the runtime engine
  - ``get_sync_url()``   bare ``postgresql://`` for offline migration SQL

Pool and session tuning lives in ``PoolSettings``.
"""

import os
from dataclasses import dataclass
from urllib.parse import quote_plus

APPLICATION_NAME = "dental-flow"

_SCHEMES = ("postgres", "postgresql", "postgresql+asyncpg", "postgresql+psycopg2")


@dataclass(frozen=True)
class PoolSettings:
    pool_size: int = 5
    max_overflow: int = 10
    recycle_seconds: int = 1800
    # Bounds one step request's single-row read or write; 0 disables it.
    statement_timeout_ms: int = 5000


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def get_pool_settings() -> PoolSettings:
    """Read ``PG_POOL_SIZE``, ``PG_MAX_OVERFLOW``, ``PG_POOL_RECYCLE_SECONDS``
    and ``PG_STATEMENT_TIMEOUT_MS``."""
    defaults = PoolSettings()
    return PoolSettings(
        pool_size=_env_int("PG_POOL_SIZE", defaults.pool_size),
        max_overflow=_env_int("PG_MAX_OVERFLOW", defaults.max_overflow),
        recycle_seconds=_env_int("PG_POOL_RECYCLE_SECONDS", defaults.recycle_seconds),
        statement_timeout_ms=_env_int("PG_STATEMENT_TIMEOUT_MS", defaults.statement_timeout_ms),
    )


def _url_from_parts() -> str:
    user = quote_plus(os.getenv("PG_USER", "dental_flow"))
    password = quote_plus(os.getenv("PG_PASSWORD", "dental_flow"))
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    database = os.getenv("PG_DATABASE", "dental_flow")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def _configured_url() -> str:
    return os.getenv("DATABASE_URL") or _url_from_parts()


def with_driver(url: str, driver: str | None) -> str:
    """Swap the scheme of a PostgreSQL *url* for ``postgresql[+driver]``."""
    scheme, sep, rest = url.partition("://")
    if not sep or scheme not in _SCHEMES:
        raise ValueError(f"Not a PostgreSQL URL: {scheme or url!r}")
    target = f"postgresql+{driver}" if driver else "postgresql"
    return f"{target}://{rest}"


def get_sync_url() -> str:
    return with_driver(_configured_url(), None)


def get_async_url() -> str:
    return with_driver(_configured_url(), "asyncpg")
