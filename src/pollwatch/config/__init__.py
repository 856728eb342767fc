"""pollwatch configuration.

This module provides the public API for configuration management: loading a
TOML config file, merging command-line overrides and validating the result.

Example:
    >>> from pollwatch.config import load_config
    >>> config = load_config(overrides={"exact": ["Cargo.toml"], "command": ["make"]})
    >>> config.sleep
    0.1
"""

from pollwatch.exceptions import (
    ConfigLoadError,
    ConfigurationError,
    ConfigValidationError,
)

from ._load import load_config
from ._loader import deep_merge, read_toml_file
from ._models import (
    DEFAULT_INTERVAL,
    LogFormat,
    LoggingConfig,
    LogLevel,
    WatchConfig,
)

__all__ = [
    "DEFAULT_INTERVAL",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigurationError",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "WatchConfig",
    "deep_merge",
    "load_config",
    "read_toml_file",
]
