"""Configuration management for dbmigrate."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, field_validator

from .constants import (
    CONFIG_ENV_VAR,
    DATABASE_URL_ENV_VAR,
    DEFAULT_CONFIG_FILENAME,
    MIGRATIONS_DIR_ENV_VAR,
)
from .driver import get_scheme
from .utils import ensure_dir, expand_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_TEMPLATE_PATH = Path(__file__).with_name("config.toml")


def _load_default_template() -> dict[str, Any]:
    """Load the packaged default config template."""
    with open(DEFAULT_CONFIG_TEMPLATE_PATH, "rb") as f:
        return tomllib.load(f)


def _merge_config_data(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge config dictionaries recursively."""
    merged = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_config_data(base_value, value)
        else:
            merged[key] = value
    return merged


def _env_overrides() -> dict[str, Any]:
    """Collect overrides from environment variables."""
    overrides: dict[str, Any] = {}

    url = os.environ.get(DATABASE_URL_ENV_VAR)
    if url:
        overrides.setdefault("database", {})["url"] = url

    migrations_dir = os.environ.get(MIGRATIONS_DIR_ENV_VAR)
    if migrations_dir:
        overrides.setdefault("paths", {})["migrations_dir"] = migrations_dir

    return overrides


class DatabaseConfig(BaseModel):
    """Target database configuration."""

    url: str

    @field_validator("url")
    @classmethod
    def require_scheme(cls, v: str) -> str:
        """Require a URL scheme selecting the driver."""
        if get_scheme(v) is None:
            raise ValueError(f"database URL needs a scheme such as sqlite3://, got {v!r}")
        return v


class PathsConfig(BaseModel):
    """Path configuration."""

    migrations_dir: Path

    @field_validator("migrations_dir", mode="before")
    @classmethod
    def expand_paths(cls, v: str | Path) -> Path:
        """Expand path strings with ~ and environment variables."""
        if isinstance(v, str):
            return expand_path(v)
        return v


class RunConfig(BaseModel):
    """Run configuration."""

    timeout: float = Field(default=0.0, ge=0, description="Seconds before a run is abandoned (0 disables)")


class Config(BaseModel):
    """Configuration for dbmigrate."""

    database: DatabaseConfig
    paths: PathsConfig
    run: RunConfig = Field(default_factory=RunConfig)

    @property
    def database_url(self) -> str:
        """Connection URL of the target database."""
        return self.database.url

    @property
    def migrations_dir(self) -> Path:
        """Directory holding migration files."""
        return self.paths.migrations_dir

    @property
    def timeout(self) -> float | None:
        """Run deadline in seconds, None for no deadline."""
        return self.run.timeout or None


def get_config_path() -> Path:
    """
    Get configuration file path.

    Priority:
    1. DBMIGRATE_CONFIG environment variable
    2. Default: ./dbmigrate.toml

    Returns:
        Path to config file
    """
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        return expand_path(env_config)

    return expand_path(DEFAULT_CONFIG_FILENAME)


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from TOML file using Pydantic validation.

    Values are layered: packaged defaults, then the config file (when it
    exists), then DBMIGRATE_DATABASE_URL / DBMIGRATE_MIGRATIONS_DIR.

    Args:
        config_path: Optional custom config path

    Returns:
        Config instance with validated values

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        config_path = get_config_path()

    data = _load_default_template()

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = _merge_config_data(data, tomllib.load(f))
    else:
        logger.debug(f"No config file at {config_path}, using defaults")

    data = _merge_config_data(data, _env_overrides())
    return Config.model_validate(data)


def save_config(config_path: Path, config: Config) -> None:
    """
    Persist configuration to a TOML file.

    Args:
        config_path: Destination file
        config: Configuration to write
    """
    ensure_dir(config_path.parent)
    with open(config_path, "wb") as f:
        tomli_w.dump(config.model_dump(mode="json"), f)
