"""YAML configuration parser for launch-monitor.

Parses YAML configuration files into MonitorConfig objects and merges
environment and command-line overrides on top.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from ..errors import ConfigError
from .schema import MonitorConfig
from .validator import validate_config

logger = logging.getLogger(__name__)

# Environment variable overriding the backend base URL
URL_ENV_VAR = "LAUNCH_MONITOR_URL"

_NUMERIC_FIELDS = (
    "poll_interval",
    "rerun_report_delay",
    "request_timeout",
    "stream_connect_timeout",
    "run_timeout",
)


def parse_config(file_path: Union[str, Path]) -> MonitorConfig:
    """Parse a YAML configuration file into a MonitorConfig object.

    Args:
        file_path: Path to the YAML config file.

    Returns:
        Parsed MonitorConfig object.

    Raises:
        ConfigError: If the file is missing, malformed or has bad values.
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise ConfigError(f"Config file not found: {file_path}")

    if file_path.suffix not in (".yaml", ".yml"):
        raise ConfigError(f"Expected .yaml or .yml file, got: {file_path.suffix}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in {file_path}: {e}") from e

    if data is None:
        return MonitorConfig()

    return parse_config_data(data, source=str(file_path))


def parse_config_data(data: dict, source: str = "<inline>") -> MonitorConfig:
    """Parse a config from a dictionary (already loaded YAML).

    Unknown keys are ignored.

    Args:
        data: Dictionary with config data.
        source: Source identifier for error messages.

    Returns:
        Parsed MonitorConfig object.

    Raises:
        ConfigError: If values have the wrong type.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(data).__name__}")

    # Accept an optional top-level "monitor" section
    if isinstance(data.get("monitor"), dict):
        data = data["monitor"]

    values = {
        k: v for k, v in data.items()
        if k in MonitorConfig.__dataclass_fields__
    }

    for name in _NUMERIC_FIELDS:
        if name in values:
            values[name] = _as_float(values[name], name, source)

    if "retries" in values:
        try:
            values["retries"] = int(values["retries"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"'retries' must be an integer in {source}") from e

    if "base_url" in values and not isinstance(values["base_url"], str):
        raise ConfigError(f"'base_url' must be a string in {source}")

    return MonitorConfig(**values)


def load_config(
    file_path: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> MonitorConfig:
    """Build the effective configuration.

    Precedence (lowest to highest): defaults, config file,
    LAUNCH_MONITOR_URL environment variable, explicit overrides.
    Overrides set to None are ignored.

    Raises:
        ConfigError: If the merged configuration is invalid.
    """
    config = parse_config(file_path) if file_path else MonitorConfig()

    env_url = os.environ.get(URL_ENV_VAR)
    if env_url:
        config.base_url = env_url.strip().rstrip("/")

    for key, value in overrides.items():
        if value is None:
            continue
        if key not in MonitorConfig.__dataclass_fields__:
            raise ConfigError(f"Unknown config option: {key}")
        setattr(config, key, value)
    # Re-normalize overridden fields
    config.__post_init__()

    return check_config(config)


def check_config(config: MonitorConfig) -> MonitorConfig:
    """Validate a configuration, logging its warnings.

    Returns:
        The same config when it is valid.

    Raises:
        ConfigError: Listing every validation error.
    """
    validation = validate_config(config)
    for warning in validation.warnings:
        logger.warning("Config %s: %s", warning.path, warning.message)

    if not validation.valid:
        errors_str = "; ".join(f"{e.path}: {e.message}" for e in validation.errors)
        raise ConfigError(f"Invalid config: {errors_str}")

    return config


def _as_float(value: Any, name: str, source: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number in {source}") from e
