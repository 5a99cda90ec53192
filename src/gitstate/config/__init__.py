"""gitstate configuration.

This module provides the public API for configuration management,
including loading, validation, and typed access to configuration values.

Example:
    >>> from gitstate.config import Config
    >>> config = Config.load()
    >>> config.network.max_retries
    1
"""

from gitstate.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
)

from ._defaults import DEFAULT_CONFIG
from ._loader import (
    deep_merge,
    parse_env_vars,
    parse_string_value,
    read_toml_file,
    set_nested_key,
)
from ._models import (
    CONFIG_FILE_NAME,
    AuthorConfig,
    Config,
    HistoryConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    NetworkConfig,
    SerializerConfig,
)
from ._validation import (
    ValidationIssue,
    collect_issues,
    raise_if_validation_errors,
    validate_config,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_CONFIG",
    "AuthorConfig",
    "Config",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "HistoryConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "NetworkConfig",
    "SerializerConfig",
    "ValidationIssue",
    "collect_issues",
    "deep_merge",
    "parse_env_vars",
    "parse_string_value",
    "raise_if_validation_errors",
    "read_toml_file",
    "set_nested_key",
    "validate_config",
]
