"""FastAPI plugin for SQLAlchemy connection pools with retrying execution."""

from fastapi_persistent.db import (
    ConnectionPool,
    async_with_pool,
    close_pool,
    make_pg_pool,
    make_plugin_pool,
    migrate_all,
    sql_migrations,
    with_pool,
)
from fastapi_persistent.errors import (
    ConfigError,
    KeyConversionError,
    PersistConversionError,
    PersistError,
)
from fastapi_persistent.foreign import Entity, entity_of, follow_foreign_key
from fastapi_persistent.handlers import (
    PersistPool,
    PersistStateDep,
    arun_persist,
    get_persist_pool,
    get_persist_state,
    run_persist,
)
from fastapi_persistent.keys import (
    Key,
    mk_int,
    mk_key,
    mk_key_bs,
    mk_key_t,
    mk_word64,
    show_key,
    show_key_bs,
)
from fastapi_persistent.plugin import PersistPlugin, PersistState, init_persist
from fastapi_persistent.values import from_persist_value

__all__ = [
    "ConfigError",
    "ConnectionPool",
    "Entity",
    "Key",
    "KeyConversionError",
    "PersistConversionError",
    "PersistError",
    "PersistPlugin",
    "PersistPool",
    "PersistState",
    "PersistStateDep",
    "arun_persist",
    "async_with_pool",
    "close_pool",
    "entity_of",
    "follow_foreign_key",
    "from_persist_value",
    "get_persist_pool",
    "get_persist_state",
    "init_persist",
    "make_pg_pool",
    "make_plugin_pool",
    "migrate_all",
    "mk_int",
    "mk_key",
    "mk_key_bs",
    "mk_key_t",
    "mk_word64",
    "run_persist",
    "show_key",
    "show_key_bs",
    "sql_migrations",
    "with_pool",
]
