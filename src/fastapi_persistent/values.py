"""Decoding of values read from the database into concrete Python types."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from fastapi_persistent.errors import PersistConversionError

T = TypeVar("T")


@lru_cache(maxsize=256)
def _adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def from_persist_value(value: Any, target: type[T]) -> T:
    """Convert a persisted value to ``target``.

    Uses pydantic's lax coercion, so ``"42"`` decodes as ``int`` and
    ``1`` as ``bool``. Raises ``PersistConversionError`` if it does not fit.
    """
    try:
        return _adapter(target).validate_python(value)
    except ValidationError as exc:
        reason = exc.errors()[0]["msg"] if exc.errors() else ""
        raise PersistConversionError(value, target, reason) from exc
