"""Exception types raised by the persistence plugin."""

from __future__ import annotations


class PersistError(Exception):
    """Base class for plugin errors."""


class ConfigError(PersistError):
    """Required configuration is missing or malformed. Raised at startup."""


class KeyConversionError(PersistError, ValueError):
    """A value could not be turned into an entity key."""


class PersistConversionError(PersistError, ValueError):
    """A value read from the database does not decode into the requested type."""

    def __init__(self, value: object, target: object, reason: str = ""):
        self.value = value
        self.target = target
        name = getattr(target, "__name__", repr(target))
        message = f"Persist conversion failed: {value!r} -> {name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
