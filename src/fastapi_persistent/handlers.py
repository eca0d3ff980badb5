"""Request-handler access to the pool — FastAPI dependencies and run helpers."""

from __future__ import annotations

from typing import Annotated, TypeVar

from fastapi import Depends, Request
from sqlalchemy import Engine

from fastapi_persistent.db.pool import ConnectionPool
from fastapi_persistent.db.retry import SqlAction, async_with_pool, with_pool
from fastapi_persistent.plugin import PersistState

T = TypeVar("T")


def get_persist_state(request: Request) -> PersistState:
    """Get the plugin state published by the lifespan."""
    state = getattr(request.app.state, "persist", None)
    if state is None:
        raise RuntimeError("Persist plugin not initialized. Add its lifespan to the app.")
    return state


def get_persist_pool(state: Annotated[PersistState, Depends(get_persist_state)]) -> ConnectionPool:
    return state.pool


PersistStateDep = Annotated[PersistState, Depends(get_persist_state)]
PersistPool = Annotated[ConnectionPool, Depends(get_persist_pool)]


def _resolve(source: PersistState | ConnectionPool) -> tuple[ConnectionPool, dict]:
    if isinstance(source, PersistState):
        return source.pool, source.retry_options
    if isinstance(source, Engine):
        return source, {}
    raise TypeError(f"Expected PersistState or Engine, got {type(source).__name__}")


def run_persist(source: PersistState | ConnectionPool, action: SqlAction[T]) -> T:
    """Run a database action with the retry policy of ``source``."""
    pool, options = _resolve(source)
    return with_pool(pool, action, **options)


async def arun_persist(source: PersistState | ConnectionPool, action: SqlAction[T]) -> T:
    """Async counterpart of ``run_persist``; never blocks the event loop."""
    pool, options = _resolve(source)
    return await async_with_pool(pool, action, **options)
