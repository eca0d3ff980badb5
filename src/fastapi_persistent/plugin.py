"""FastAPI plugin — builds the pool at startup, runs migrations, disposes at shutdown."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import FastAPI
from sqlalchemy.orm import Session

from fastapi_persistent.config import PersistConfig
from fastapi_persistent.db.migrations import Migration
from fastapi_persistent.db.pool import ConnectionPool, close_pool, make_plugin_pool

logger = logging.getLogger(__name__)

PLUGIN_NAME = "persist"
PLUGIN_DESCRIPTION = "Plugin for the persistent DB library"
DATA_DIR = Path(__file__).parent / "resources" / "db"


@dataclass
class PersistState:
    """Plugin state published on ``app.state.persist``."""

    pool: ConnectionPool
    config: PersistConfig | None = field(default=None, repr=False)

    @property
    def retry_options(self) -> dict[str, Any]:
        if self.config is None:
            return {}
        return {"max_retries": self.config.retry_limit, "delay": self.config.retry_delay}


class PersistPlugin:
    """Initialize the persistence layer with an optional migration.

    The migration runs once against the freshly created pool, before the app
    starts serving. Typical use::

        plugin = init_persist(migrate_all(Base.metadata))
        app = FastAPI(lifespan=plugin.lifespan)
    """

    name = PLUGIN_NAME
    description = PLUGIN_DESCRIPTION
    data_dir = DATA_DIR

    def __init__(
        self,
        migration: Migration | None = None,
        *,
        config: PersistConfig | None = None,
        config_path: Path | None = None,
    ):
        self.migration = migration
        self.config = config
        self.config_path = config_path

    def load_config(self) -> PersistConfig:
        if self.config is not None:
            return self.config
        return PersistConfig.from_yaml(self.config_path)

    def initialize(self) -> PersistState:
        """Create the pool and run the migration. Errors here are fatal."""
        config = self.load_config()
        pool = make_plugin_pool(config)

        if self.migration is not None:
            try:
                with Session(pool) as session, session.begin():
                    self.migration(session)
            except Exception:
                close_pool(pool)
                raise
            logger.info("Migration applied")

        logger.info("%s plugin initialized", self.name)
        return PersistState(pool, config)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[dict[str, PersistState]]:
        """Application startup/shutdown lifecycle."""
        state = self.initialize()
        app.state.persist = state
        try:
            yield {"persist": state}
        finally:
            close_pool(state.pool)
            del app.state.persist
            logger.info("%s plugin shut down", self.name)


def init_persist(
    migration: Migration | None = None,
    *,
    config: PersistConfig | None = None,
    config_path: Path | None = None,
) -> PersistPlugin:
    """Create the persistence plugin, e.g. ``init_persist(migrate_all(Base.metadata))``."""
    return PersistPlugin(migration, config=config, config_path=config_path)
