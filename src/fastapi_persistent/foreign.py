"""Entities and foreign-key following."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from fastapi_persistent.db.pool import ConnectionPool
from fastapi_persistent.db.retry import with_pool
from fastapi_persistent.keys import Key, mk_key

logger = logging.getLogger(__name__)

A = TypeVar("A")
T = TypeVar("T")


@dataclass(frozen=True)
class Entity(Generic[T]):
    """A row together with its primary key."""

    key: Key[T]
    value: T


def entity_of(row: T) -> Entity[T]:
    """Wrap a loaded mapped row into an Entity.

    The row's mapper must have a single integer primary key column.
    """
    identity = inspect(row).identity
    if identity is None or len(identity) != 1:
        raise ValueError(f"{type(row).__name__} has no single-column identity")
    return Entity(mk_key(type(row), identity[0]), row)


def get_entity(pool: ConnectionPool, key: Key[A], **retry) -> A | None:
    """Point lookup of a row by primary key."""

    def _get(session: Session) -> A | None:
        return session.get(key.entity, key.value)

    retry.setdefault("operation", f"get {key.entity.__name__}")
    return with_pool(pool, _get, **retry)


def follow_foreign_key(
    pool: ConnectionPool,
    to_key: Callable[[T], Key[A]],
    entity: Entity[T],
    **retry,
) -> Entity[A] | None:
    """Follow a foreign key field of ``entity`` and load the row it points at.

    ``to_key`` extracts the key from the entity's value. Returns ``None`` when
    no such row exists.
    """
    target_key = to_key(entity.value)
    row = get_entity(pool, target_key, **retry)
    if row is None:
        logger.debug("Dangling foreign key %s -> %s", type(entity.value).__name__, target_key)
        return None
    return Entity(target_key, row)
