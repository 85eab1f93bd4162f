"""Configuration loader for AppDeck deployers.

This module loads :class:`LocalDeployerProperties` from an optional YAML file
and ``APPDECK_*`` environment variables. Environment variables take
precedence over file values, which take precedence over built-in defaults.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from appdeck.lib.errors import ConfigError
from appdeck.models.config import LocalDeployerProperties

logger = logging.getLogger(__name__)

# Environment variable to field name mapping
ENV_VAR_MAP = {
    "working_directories_root": "APPDECK_WORKING_DIRECTORIES_ROOT",
    "delete_files_on_exit": "APPDECK_DELETE_FILES_ON_EXIT",
    "env_vars_to_inherit": "APPDECK_ENV_VARS_TO_INHERIT",
    "launcher_cmd": "APPDECK_LAUNCHER_CMD",
    "shutdown_timeout": "APPDECK_SHUTDOWN_TIMEOUT",
    "health_check_timeout": "APPDECK_HEALTH_CHECK_TIMEOUT",
    "host": "APPDECK_HOST",
}

# Section of the YAML file holding deployer properties
CONFIG_SECTION = "deployer"


def _parse_env_value(field_name: str, value: str) -> Any:
    """Parse environment variable value to appropriate type.

    Args:
        field_name: Name of the field (used to determine type)
        value: String value from environment variable

    Returns:
        Parsed value in correct type (int, float, bool, or str)

    Raises:
        ValueError: If value cannot be parsed
    """
    if field_name == "shutdown_timeout":
        return int(value)
    elif field_name == "health_check_timeout":
        return float(value)
    elif field_name == "delete_files_on_exit":
        return value.lower() in ("true", "1", "yes", "on")
    else:
        return value


def _env_overrides(env_vars: Mapping[str, str]) -> dict[str, Any]:
    """Collect property overrides from environment variables.

    Args:
        env_vars: Environment variables mapping

    Returns:
        Field values keyed by field name

    Raises:
        ConfigError: If a variable holds a value of the wrong type
    """
    overrides: dict[str, Any] = {}
    for field_name, env_var_name in ENV_VAR_MAP.items():
        if env_var_name not in env_vars:
            continue
        try:
            overrides[field_name] = _parse_env_value(
                field_name, env_vars[env_var_name]
            )
        except ValueError as e:
            raise ConfigError(
                field=field_name,
                message=f"Invalid value in {env_var_name}: {e}",
            ) from e
    return overrides


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read deployer properties from a YAML file.

    The properties may live under a ``deployer:`` section or at the top
    level of the document.

    Args:
        path: Path to YAML file

    Returns:
        Parsed properties (empty for an empty file)

    Raises:
        ConfigError: If the file is missing or is not a YAML mapping
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            field="config_path",
            message=f"Cannot read deployer configuration {path}: {e}",
        ) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            field="config_path",
            message=f"Invalid YAML in {path}: {e}",
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            field="config_path",
            message=f"Expected a mapping in {path}, got {type(data).__name__}",
        )

    section = data.get(CONFIG_SECTION, data)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            field=CONFIG_SECTION,
            message=f"Expected a mapping, got {type(section).__name__}",
        )
    return dict(section)


def _flatten_validation_errors(exc: PydanticValidationError) -> list[str]:
    """Turn a pydantic ValidationError into one message per field."""
    messages: list[str] = []
    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(item) for item in loc) if loc else "unknown"
        messages.append(f"Field '{field_path}': {error.get('msg', 'invalid')}")
    return messages or ["Validation failed with unknown error"]


def load_deployer_properties(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> LocalDeployerProperties:
    """Load local deployer properties.

    Args:
        config_path: Optional YAML file with deployer properties
        env: Environment variables to read overrides from
            (defaults to ``os.environ``)

    Returns:
        Validated LocalDeployerProperties

    Raises:
        ConfigError: If the file cannot be read or the values are invalid
    """
    values: dict[str, Any] = {}
    if config_path is not None:
        values.update(_read_config_file(Path(config_path)))
        logger.debug(f"Loaded deployer configuration from {config_path}")

    overrides = _env_overrides(os.environ if env is None else env)
    if overrides:
        logger.debug(f"Applying environment overrides: {sorted(overrides)}")
    values.update(overrides)

    try:
        return LocalDeployerProperties(**values)
    except PydanticValidationError as e:
        messages = _flatten_validation_errors(e)
        raise ConfigError(field="deployer", message="; ".join(messages)) from e
