"""Demo host application — FastAPI app wired to the persist plugin."""

from __future__ import annotations

import logging

import sentry_sdk
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.orm import Session

from fastapi_persistent.config import AppConfig, PersistConfig
from fastapi_persistent.db.migrations import sql_migrations
from fastapi_persistent.handlers import PersistStateDep, run_persist
from fastapi_persistent.plugin import DATA_DIR, init_persist

logger = logging.getLogger(__name__)


def _init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK if a DSN is configured and not in development."""
    if not dsn or environment == "development":
        return
    sentry_sdk.init(
        dsn,
        environment=environment,
        traces_sample_rate=0,
        send_client_reports=False,
    )


def _ping(session: Session) -> int:
    return session.execute(text("SELECT 1")).scalar_one()


def create_app(
    config: AppConfig | None = None,
    persist_config: PersistConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = AppConfig.from_yaml()

    _init_sentry(config.sentry_dsn, config.environment)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.server.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    plugin = init_persist(
        sql_migrations(DATA_DIR),
        config=persist_config,
        config_path=config.persist_config_path,
    )

    app = FastAPI(
        title="fastapi-persistent demo",
        description=plugin.description,
        lifespan=plugin.lifespan,
        debug=config.environment == "development",
    )

    @app.get("/health")
    def health(state: PersistStateDep) -> dict[str, str]:
        run_persist(state, _ping)
        return {"status": "ok"}

    return app


def cli_entry() -> None:
    """CLI entry point for running the demo server."""
    import uvicorn

    config = AppConfig.from_yaml()
    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level,
    )
