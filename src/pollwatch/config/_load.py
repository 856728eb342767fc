"""Building a validated WatchConfig from its sources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from pollwatch.exceptions import ConfigLoadError, ConfigValidationError

from ._loader import deep_merge, read_toml_file
from ._models import WatchConfig

if TYPE_CHECKING:
    from pathlib import Path

WATCH_TABLE = "watch"
LOGGING_TABLE = "logging"


def _file_values(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read the watch and logging tables of a config file.

    The ``[watch]`` table holds the WatchConfig fields and ``[logging]`` the
    logging section. Other tables are ignored.
    """
    if not path.is_file():
        msg = f"Config file not found: {path}"
        raise ConfigLoadError(msg, path=path)

    data = read_toml_file(path)
    values: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for table in (WATCH_TABLE, LOGGING_TABLE):
        section = data.get(table, {})
        if not isinstance(section, dict):
            msg = f"[{table}] in {path} must be a table"
            raise ConfigLoadError(msg, path=path)
        if table == WATCH_TABLE:
            values.update(section)  # pyright: ignore[reportUnknownArgumentType]
        elif section:
            values[LOGGING_TABLE] = section
    return values


def _drop_unset(overrides: dict[str, object]) -> dict[str, object]:
    """Remove overrides the user did not provide.

    None and empty sequences mean "not given on the command line", so they
    must not shadow values from a config file.
    """
    cleaned: dict[str, object] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)) and not value:
            continue
        if isinstance(value, dict):
            nested = _drop_unset(value)  # pyright: ignore[reportUnknownArgumentType]
            if nested:
                cleaned[key] = nested
            continue
        cleaned[key] = value
    return cleaned


def _validation_error(error: ValidationError) -> ConfigValidationError:
    first = error.errors()[0]
    key = ".".join(str(part) for part in first["loc"]) or "<root>"
    reason = first["msg"]
    msg = f"Invalid configuration for '{key}': {reason}"
    if error.error_count() > 1:
        msg += f" (and {error.error_count() - 1} more)"
    return ConfigValidationError(
        msg,
        key=key,
        value=first.get("input"),
        expected=reason,
    )


def load_config(
    *,
    config_path: Path | None = None,
    overrides: dict[str, object] | None = None,
) -> WatchConfig:
    """Load and validate the watch configuration.

    Values are merged from lowest to highest precedence: model defaults, the
    config file (if given), then ``overrides`` (usually CLI flags).

    Args:
        config_path: Path to a TOML config file.
        overrides: Values that take precedence over the config file. None
            values and empty sequences are ignored.

    Returns:
        The validated configuration.

    Raises:
        ConfigLoadError: If the config file is missing or malformed.
        ConfigValidationError: If the merged values are invalid.
    """
    values: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    if config_path is not None:
        values = _file_values(config_path)

    if overrides:
        values = deep_merge(values, _drop_unset(overrides))

    try:
        return WatchConfig.model_validate(values)
    except ValidationError as e:
        raise _validation_error(e) from e
