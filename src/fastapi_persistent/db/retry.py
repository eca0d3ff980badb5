"""Retrying executor — run a session action against the pool, retrying stale connections."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, DisconnectionError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from fastapi_persistent.config import DEFAULT_RETRY_DELAY, DEFAULT_RETRY_LIMIT
from fastapi_persistent.db.pool import ConnectionPool

logger = logging.getLogger(__name__)

T = TypeVar("T")

SqlAction = Callable[[Session], T]

# Postgres reaps idle connections; a connection leased from the pool may
# then be dead, or the pool may fail to hand one out at all.
_TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    DisconnectionError,
    PoolTimeoutError,
    ConnectionError,
)


def is_transient(exc: BaseException) -> bool:
    """Check whether an exception means a stale or lost connection."""
    if isinstance(exc, _TRANSIENT_EXCEPTIONS):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    cause = exc.__cause__ or exc.__context__
    if cause is not None and cause is not exc:
        if isinstance(cause, _TRANSIENT_EXCEPTIONS):
            return True
        if isinstance(cause, DBAPIError) and cause.connection_invalidated:
            return True
    return False


def run_action(pool: ConnectionPool, action: SqlAction[T]) -> T:
    """Run one attempt of ``action`` in its own session and transaction."""
    with Session(pool, expire_on_commit=False) as session:
        with session.begin():
            return action(session)


def with_pool(
    pool: ConnectionPool,
    action: SqlAction[T],
    *,
    max_retries: int = DEFAULT_RETRY_LIMIT,
    delay: float = DEFAULT_RETRY_DELAY,
    operation: str = "database action",
) -> T:
    """Run a database action, retrying on a stale connection.

    The action receives a ``Session`` with an open transaction, committed when
    the action returns and rolled back when it raises. If the attempt fails
    with a transient connection fault the action is retried up to
    ``max_retries`` times, sleeping ``delay`` seconds between attempts. Any
    other error is raised immediately; after the last attempt the last fault
    is raised unchanged.

    The sleep blocks the calling thread. Use ``async_with_pool`` from
    coroutines.
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    last_exc: BaseException | None = None
    for attempt in range(1 + max_retries):
        try:
            return run_action(pool, action)
        except Exception as exc:
            last_exc = exc
            if not is_transient(exc):
                raise
            if attempt < max_retries:
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.3fs: %s",
                    operation,
                    attempt + 1,
                    1 + max_retries,
                    delay,
                    exc,
                )
                time.sleep(delay)
            else:
                logger.error(
                    "%s failed after %d attempts: %s",
                    operation,
                    1 + max_retries,
                    exc,
                )
    raise last_exc  # type: ignore[misc]


async def async_with_pool(
    pool: ConnectionPool,
    action: SqlAction[T],
    *,
    max_retries: int = DEFAULT_RETRY_LIMIT,
    delay: float = DEFAULT_RETRY_DELAY,
    operation: str = "database action",
) -> T:
    """Async version — runs each attempt in a thread, backs off with ``asyncio.sleep``."""
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    last_exc: BaseException | None = None
    for attempt in range(1 + max_retries):
        try:
            return await asyncio.to_thread(run_action, pool, action)
        except Exception as exc:
            last_exc = exc
            if not is_transient(exc):
                raise
            if attempt < max_retries:
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.3fs: %s",
                    operation,
                    attempt + 1,
                    1 + max_retries,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    "%s failed after %d attempts: %s",
                    operation,
                    1 + max_retries,
                    exc,
                )
    raise last_exc  # type: ignore[misc]
