"""Connection pool construction — SQLAlchemy engine over a bounded QueuePool."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.pool import QueuePool

from fastapi_persistent.config import PersistConfig
from fastapi_persistent.errors import ConfigError

logger = logging.getLogger(__name__)

# An Engine owns its pool; callers only ever see the Engine.
ConnectionPool = Engine


def create_pool(url: str, pool_size: int) -> ConnectionPool:
    """Create a connection pool holding at most ``pool_size`` connections.

    Callers beyond that bound block until a connection is returned
    (``max_overflow=0``). No connection is opened here.
    """
    try:
        parsed = make_url(url)
        if parsed.drivername == "postgresql":
            parsed = parsed.set(drivername="postgresql+psycopg2")
        connect_args: dict[str, Any] = {}
        if parsed.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False  # Allow multi-threaded access

        engine = create_engine(
            parsed,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=0,
            connect_args=connect_args,
        )
    except ArgumentError as exc:
        raise ConfigError(f"Malformed connection string: {exc}") from exc

    logger.info(
        "Connection pool created: %s (size %d)",
        parsed.render_as_string(hide_password=True),
        pool_size,
    )
    return engine


def make_pg_pool(config: PersistConfig | Mapping[str, Any]) -> ConnectionPool:
    """Construct a connection pool from config.

    Accepts a validated ``PersistConfig`` or the raw mapping it is read from.
    Missing or malformed ``postgre-con-str`` / ``postgre-pool-size`` raise
    ``ConfigError``.
    """
    if not isinstance(config, PersistConfig):
        config = PersistConfig.from_mapping(config)
    return create_pool(config.con_str, config.pool_size)


def make_plugin_pool(config: PersistConfig | Mapping[str, Any]) -> ConnectionPool:
    """Construct the connection pool used by the plugin initializer."""
    return make_pg_pool(config)


def close_pool(pool: ConnectionPool) -> None:
    """Close all connections in the pool."""
    pool.dispose()
    logger.info("Connection pool closed")
