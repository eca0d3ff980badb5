"""Plugin configuration — YAML file, env vars, defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings

from fastapi_persistent.errors import ConfigError


def _repo_root() -> Path:
    """Find the repository root (directory containing pyproject.toml)."""
    current = Path(__file__).resolve().parent.parent.parent
    if (current / "pyproject.toml").exists():
        return current
    return Path.cwd()


REPO_ROOT = _repo_root()

DEFAULT_CONFIG_PATH = REPO_ROOT / "config" / "persist.yml"

# Retry defaults for the executor
DEFAULT_RETRY_LIMIT = 5
DEFAULT_RETRY_DELAY = 0.05  # seconds


class PersistConfig(BaseSettings):
    """Connection settings for the plugin.

    The YAML keys keep their original hyphenated spelling
    (``postgre-con-str``, ``postgre-pool-size``). Environment variables
    (``PERSIST_CON_STR`` and friends) override values from the file.
    """

    con_str: str = Field(
        validation_alias=AliasChoices("persist_con_str", "postgre-con-str"),
        min_length=1,
    )
    pool_size: int = Field(
        validation_alias=AliasChoices("persist_pool_size", "postgre-pool-size"),
        gt=0,
    )
    retry_limit: int = Field(
        default=DEFAULT_RETRY_LIMIT,
        validation_alias=AliasChoices("persist_retry_limit", "retry-limit"),
        ge=0,
    )
    retry_delay: float = Field(
        default=DEFAULT_RETRY_DELAY,
        validation_alias=AliasChoices("persist_retry_delay", "retry-delay"),
        ge=0,
    )

    model_config = {"env_prefix": "PERSIST_", "populate_by_name": True}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Env vars outrank the file-derived values passed as init kwargs
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def _key_names(cls) -> dict[str, tuple[str, str]]:
        """Every accepted spelling of a key -> (env alias, file key)."""
        names: dict[str, tuple[str, str]] = {}
        for field_name, info in cls.model_fields.items():
            env_alias, file_key = info.validation_alias.choices
            for spelling in (field_name, env_alias, file_key):
                names[spelling] = (env_alias, file_key)
        return names

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> PersistConfig:
        """Validate a raw mapping, turning validation failures into ConfigError.

        Keys may use the file spelling (``postgre-pool-size``) or the field
        name (``pool_size``). Environment variables take precedence.
        """
        names = cls._key_names()
        kwargs = {names.get(key, (key,))[0]: value for key, value in values.items()}
        try:
            return cls(**kwargs)
        except ValidationError as exc:
            keys = []
            for err in exc.errors():
                loc = str(err["loc"][0]) if err["loc"] else ""
                keys.append(names.get(loc, (loc, loc))[1])
            raise ConfigError(
                f"Invalid persist configuration ({', '.join(keys)}): {exc}"
            ) from exc

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> PersistConfig:
        """Load config from a YAML file, with env var overrides."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        values: dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ConfigError(f"{path}: expected a mapping at the top level")
            values = loaded

        return cls.from_mapping(values)


class ServerConfig(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"

    model_config = {"env_prefix": "PERSIST_SERVER_"}


class AppConfig(BaseSettings):
    """Configuration of the bundled host application."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    persist_config_path: Path = DEFAULT_CONFIG_PATH

    environment: str = "development"
    sentry_dsn: str = ""

    model_config = {"env_prefix": "PERSIST_APP_"}

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> AppConfig:
        """Load config from YAML file, with env var overrides."""
        if path is None:
            path = REPO_ROOT / "config" / "app.yml"

        values: dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                values = yaml.safe_load(f) or {}

        return cls(**values)
