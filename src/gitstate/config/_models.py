# pyright: reportExplicitAny=false, reportAny=false
"""Configuration models.

This module defines the frozen Pydantic models for every configuration
section and the root Config container with its factory methods.
"""

import os
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field

from gitstate.config._defaults import DEFAULT_CONFIG
from gitstate.config._loader import deep_merge, parse_env_vars, read_toml_file

CONFIG_FILE_NAME = "gitstate.toml"


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""


class NetworkConfig(BaseModel):
    """Network operation configuration section.

    Attributes:
        timeout: Seconds before a push, pull, or fetch is abandoned.
        max_retries: Automatic retries for transient network failures.
        backoff_base: Delay in seconds before the first retry.
        backoff_max: Upper bound for the retry delay in seconds.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    timeout: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=1, ge=0, le=5)
    backoff_base: float = Field(default=0.5, ge=0)
    backoff_max: float = Field(default=5.0, ge=0)


class SerializerConfig(BaseModel):
    """Operation serializer configuration section.

    Attributes:
        max_pending: Operations allowed to wait or run at once per session.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    max_pending: int = Field(default=64, ge=1)


class HistoryConfig(BaseModel):
    """Commit history configuration section."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    default_max_count: int = Field(default=50, ge=1)


class AuthorConfig(BaseModel):
    """Fallback commit identity used when git config provides none."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    email: str = ""


class Config(BaseModel):
    """Configuration container with typed access.

    Use the factory methods rather than the constructor so that defaults,
    files, and environment overrides are merged and validated consistently.

    Example:
        >>> config = Config.from_dict({"network": {"timeout": 5}})
        >>> config.network.timeout
        5.0
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    logging: LoggingConfig = LoggingConfig()
    network: NetworkConfig = NetworkConfig()
    serializer: SerializerConfig = SerializerConfig()
    history: HistoryConfig = HistoryConfig()
    author: AuthorConfig = AuthorConfig()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create configuration from a dictionary merged over the defaults.

        Args:
            data: Dictionary of configuration values.

        Returns:
            Validated configuration object.

        Raises:
            ConfigValidationError: If a value fails validation.
        """
        # Deferred import to avoid circular dependency
        from gitstate.config._validation import validate_config  # noqa: PLC0415

        merged = deep_merge(DEFAULT_CONFIG, data)
        return validate_config(cls, merged)

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load configuration from a specific TOML file.

        Args:
            path: Path to the TOML config file.

        Returns:
            Configuration object from the file merged over the defaults.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigLoadError: If the file cannot be parsed.
            ConfigValidationError: If validation fails.
        """
        from gitstate.config._validation import validate_config  # noqa: PLC0415

        merged = deep_merge(DEFAULT_CONFIG, read_toml_file(path))
        return validate_config(cls, merged, source=str(path))

    @classmethod
    def load(
        cls,
        *,
        workspace: Path | None = None,
        path: Path | None = None,
        include_env: bool = True,
    ) -> Self:
        """Load merged configuration from all sources.

        Sources are merged in precedence order: defaults, then the config
        file (``path``, ``$GITSTATE_CONFIG``, or ``<workspace>/gitstate.toml``
        if present), then ``GITSTATE_*`` environment variables.

        Args:
            workspace: Workspace directory searched for gitstate.toml.
            path: Explicit configuration file.
            include_env: Include environment variables as a source.

        Returns:
            Merged configuration object.

        Raises:
            ConfigLoadError: If the config file cannot be parsed.
            ConfigValidationError: If the merged config fails validation.
        """
        from gitstate.config._validation import validate_config  # noqa: PLC0415

        merged = deep_merge(DEFAULT_CONFIG, {})
        source: str | None = None

        config_file = path
        if config_file is None and (env_path := os.environ.get("GITSTATE_CONFIG")):
            config_file = Path(env_path)
        if config_file is None and workspace is not None:
            candidate = workspace / CONFIG_FILE_NAME
            if candidate.is_file():
                config_file = candidate

        if config_file is not None:
            merged = deep_merge(merged, read_toml_file(config_file))
            source = str(config_file)

        if include_env and (env_values := parse_env_vars()):
            merged = deep_merge(merged, env_values)

        return validate_config(cls, merged, source=source)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation key.

        Args:
            key: Dot-notation key (e.g., "network.timeout").
            default: Default value if key not found.

        Returns:
            The configuration value, or default if not found.

        Examples:
            >>> Config.from_dict({}).get("serializer.max_pending")
            64
        """
        current: Any = self.model_dump()
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current
