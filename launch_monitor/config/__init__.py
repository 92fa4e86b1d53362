"""Config module - YAML settings parsing."""

from .schema import (
    DEFAULT_BASE_URL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RERUN_REPORT_DELAY,
    MonitorConfig,
    ValidationError,
    ValidationResult,
)
from .parser import URL_ENV_VAR, check_config, load_config, parse_config, parse_config_data
from .validator import validate_config

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_RERUN_REPORT_DELAY",
    "MonitorConfig",
    "ValidationError",
    "ValidationResult",
    "URL_ENV_VAR",
    "check_config",
    "load_config",
    "parse_config",
    "parse_config_data",
    "validate_config",
]
