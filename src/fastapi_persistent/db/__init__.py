"""Database layer — connection pool, retrying executor, migrations."""

from fastapi_persistent.db.migrations import migrate_all, sql_migrations
from fastapi_persistent.db.pool import (
    ConnectionPool,
    close_pool,
    create_pool,
    make_pg_pool,
    make_plugin_pool,
)
from fastapi_persistent.db.retry import async_with_pool, is_transient, with_pool

__all__ = [
    "ConnectionPool",
    "async_with_pool",
    "close_pool",
    "create_pool",
    "is_transient",
    "make_pg_pool",
    "make_plugin_pool",
    "migrate_all",
    "sql_migrations",
    "with_pool",
]
