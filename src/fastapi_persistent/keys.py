"""Entity keys — typed wrappers over 64-bit integer primary keys."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Generic, TypeVar

from fastapi_persistent.errors import KeyConversionError

E = TypeVar("E")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
_WORD64_MASK = 2**64 - 1

_DECIMAL_RE = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class Key(Generic[E]):
    """Primary key of a row of ``entity`` (a mapped class)."""

    entity: type[E]
    value: int

    def __str__(self) -> str:
        return show_key(self)


def mk_key(entity: type[E], n: int) -> Key[E]:
    """Make a Key from an int."""
    if isinstance(n, bool) or not isinstance(n, int):
        raise KeyConversionError(f"Key must be an int, got {type(n).__name__}")
    if not INT64_MIN <= n <= INT64_MAX:
        raise KeyConversionError(f"Key {n} does not fit in 64 bits")
    return Key(entity, n)


def mk_key_t(entity: type[E], s: str) -> Key[E]:
    """Make a Key from its decimal text form.

    Raises ``KeyConversionError`` for anything that is not a plain decimal
    integer; surrounding whitespace is not accepted.
    """
    if not _DECIMAL_RE.fullmatch(s):
        raise KeyConversionError(f"Can't read a key from text {s!r}")
    return mk_key(entity, int(s))


def mk_key_bs(entity: type[E], b: bytes) -> Key[E]:
    """Make a Key from UTF-8 encoded decimal bytes."""
    try:
        s = b.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise KeyConversionError(f"Can't read a key from bytes {b!r}") from exc
    if not _DECIMAL_RE.fullmatch(s):
        raise KeyConversionError(f"Can't read a key from bytes {b!r}")
    return mk_key(entity, int(s))


def show_key(key: Key) -> str:
    return str(mk_int(key))


def show_key_bs(key: Key) -> bytes:
    return show_key(key).encode("utf-8")


def mk_int(key: Key) -> int:
    return key.value


def mk_word64(key: Key) -> int:
    """Unsigned 64-bit view of the key; negative keys wrap around."""
    return key.value & _WORD64_MASK
