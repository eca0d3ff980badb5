"""Migration actions run by the plugin right after the pool is created."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from sqlalchemy import MetaData
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

Migration = Callable[[Session], object]


def migrate_all(metadata: MetaData) -> Migration:
    """Create every table of ``metadata`` that does not exist yet.

    No diffing: existing tables are left alone, whatever their shape.
    """

    def _migrate(session: Session) -> None:
        metadata.create_all(session.connection())
        logger.info("Schema created for %d tables", len(metadata.tables))

    return _migrate


def _execute_script(session: Session, sql: str) -> None:
    """Run a whole multi-statement SQL script without splitting it."""
    conn = session.connection()
    if conn.dialect.name == "sqlite":
        # sqlite3 runs one statement per execute(); executescript takes the lot
        conn.connection.driver_connection.executescript(sql)
    else:
        conn.exec_driver_sql(sql, execution_options={"no_parameters": True})


def sql_migrations(directory: Path) -> Migration:
    """Apply the ``*.sql`` files in ``directory`` in file-name order."""

    def _migrate(session: Session) -> None:
        if not directory.is_dir():
            logger.warning("Migration directory not found: %s", directory)
            return
        for migration_path in sorted(directory.glob("*.sql")):
            _execute_script(session, migration_path.read_text())
            logger.info("Applied migration: %s", migration_path.name)

    return _migrate
