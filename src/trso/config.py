"""Configuration management for trso."""

import logging
import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import (
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_LEDGER_TABLE,
    DEFAULT_MIGRATIONS_DIR,
    ENV_CONFIG,
    ENV_LOCAL,
    ENV_MIGRATIONS_PATH,
    ENV_PATH_URL,
    ENV_TABLE,
    ENV_TOKEN,
    MIGRATION_FILE_EXTENSION,
    REMOTE_REQUEST_TIMEOUT,
)
from .utils import ensure_dir, expand_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_TEMPLATE_PATH = Path(__file__).with_name("config.toml")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    ENV_LOCAL: ("database", "local"),
    ENV_PATH_URL: ("database", "url"),
    ENV_TOKEN: ("database", "token"),
    ENV_MIGRATIONS_PATH: ("migrations", "path"),
    ENV_TABLE: ("migrations", "table"),
}


def _load_default_template() -> dict[str, Any]:
    """Load the packaged default config template."""
    with open(DEFAULT_CONFIG_TEMPLATE_PATH, "rb") as f:
        return tomllib.load(f)


def _merge_config_data(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge config dictionaries recursively."""
    merged = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, Mapping):
            merged[key] = _merge_config_data(base_value, value)
        else:
            merged[key] = value
    return merged


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect config values set through TRSO_* environment variables."""
    data: dict[str, Any] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is not None and value != "":
            data.setdefault(section, {})[key] = value
    return data


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    local: bool = False
    url: str = ""
    token: str = Field(default="", repr=False)
    timeout: float = Field(default=REMOTE_REQUEST_TIMEOUT, gt=0, description="HTTP timeout in seconds (must be > 0)")

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        """Drop surrounding whitespace from the URL or path."""
        return v.strip()

    @model_validator(mode="after")
    def check_connection(self) -> "DatabaseConfig":
        """Require a target, and a token for remote databases."""
        if not self.url:
            raise ValueError(f"database url or path is required (set {ENV_PATH_URL})")
        if not self.local and not self.token:
            raise ValueError(f"a token is required for remote databases (set {ENV_TOKEN} or {ENV_LOCAL}=true)")
        return self


class MigrationsConfig(BaseModel):
    """Migration discovery configuration."""

    model_config = ConfigDict(validate_default=True)

    path: Path = Path(DEFAULT_MIGRATIONS_DIR)
    table: str = DEFAULT_LEDGER_TABLE
    extension: str = MIGRATION_FILE_EXTENSION

    @field_validator("path", mode="before")
    @classmethod
    def expand_migrations_path(cls, v: str | Path) -> Path:
        """Expand ~ and environment variables and make the path absolute."""
        return expand_path(v, base=Path.cwd())

    @field_validator("table")
    @classmethod
    def check_table_name(cls, v: str) -> str:
        """Ledger table name must be a plain SQL identifier."""
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(f"invalid ledger table name: {v!r}")
        return v

    @field_validator("extension")
    @classmethod
    def normalize_extension(cls, v: str) -> str:
        """Ensure the extension starts with a dot."""
        return v if v.startswith(".") else f".{v}"


class Config(BaseModel):
    """Configuration for trso."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig
    migrations: MigrationsConfig = Field(default_factory=MigrationsConfig)

    @property
    def local(self) -> bool:
        """Whether the database is a local file."""
        return self.database.local

    @property
    def url_or_path(self) -> str:
        """Database file path (local) or server URL (remote)."""
        return self.database.url

    @property
    def token(self) -> str:
        """Authentication token for remote databases."""
        return self.database.token

    @property
    def timeout(self) -> float:
        """HTTP timeout for remote databases."""
        return self.database.timeout

    @property
    def migrations_path(self) -> Path:
        """Directory containing migration files."""
        return self.migrations.path

    @property
    def ledger_table(self) -> str:
        """Name of the ledger table."""
        return self.migrations.table

    @property
    def extension(self) -> str:
        """Migration file extension."""
        return self.migrations.extension


def get_config_path(env: Mapping[str, str] | None = None) -> Path | None:
    """
    Get configuration file path.

    Priority:
    1. TRSO_CONFIG environment variable
    2. trso.toml in the working directory, if it exists

    Returns:
        Path to config file, or None if there is none
    """
    env = os.environ if env is None else env
    env_config = env.get(ENV_CONFIG)
    if env_config:
        return expand_path(env_config)

    local_config = Path.cwd() / DEFAULT_CONFIG_FILENAME
    if local_config.exists():
        return local_config

    return None


def load_config(
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> Config:
    """
    Resolve configuration from defaults, config file, environment and overrides.

    Later sources win: packaged defaults, TOML file, TRSO_* environment
    variables, then ``overrides`` (usually CLI options).

    Args:
        config_path: Optional custom config path
        overrides: Nested config values, e.g. ``{"database": {"local": True}}``
        env: Environment mapping (default: os.environ)

    Returns:
        Config instance with validated values

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        ValueError: If config validation fails or the file is not valid TOML
    """
    env = os.environ if env is None else env
    data = _load_default_template()

    if config_path is None:
        config_path = get_config_path(env)

    if config_path is not None:
        logger.debug(f"Loading config from {config_path}")
        with open(config_path, "rb") as f:
            data = _merge_config_data(data, tomllib.load(f))

    data = _merge_config_data(data, _env_overrides(env))
    if overrides:
        data = _merge_config_data(data, overrides)

    return Config.model_validate(data)


def write_default_config(config_path: Path, values: Mapping[str, Any] | None = None) -> Path:
    """
    Write a config file based on the packaged template.

    Args:
        config_path: Destination file
        values: Nested values to put in place of the template defaults

    Returns:
        Path to the written file
    """
    data = _load_default_template()
    if values:
        data = _merge_config_data(data, values)

    ensure_dir(config_path.parent)
    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
    return config_path
