"""Configuration data models for launch-monitor.

Defines the dataclasses loaded from YAML configuration files.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


DEFAULT_BASE_URL = "http://localhost:8080"

# Interval between status polls in seconds
DEFAULT_POLL_INTERVAL = 1.0

# One-shot wait before looking up the rerun report, in seconds
DEFAULT_RERUN_REPORT_DELAY = 2.0


@dataclass
class MonitorConfig:
    """Settings for talking to the launcher backend and monitoring runs."""
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    rerun_report_delay: float = DEFAULT_RERUN_REPORT_DELAY
    request_timeout: float = 30.0
    stream_connect_timeout: float = 10.0
    run_timeout: float = 3600.0
    retries: int = 0
    save_report: bool = False
    report_dir: Optional[Path] = None

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if self.report_dir is not None:
            self.report_dir = Path(self.report_dir)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "base_url": self.base_url,
            "poll_interval": self.poll_interval,
            "rerun_report_delay": self.rerun_report_delay,
            "request_timeout": self.request_timeout,
            "stream_connect_timeout": self.stream_connect_timeout,
            "run_timeout": self.run_timeout,
            "retries": self.retries,
            "save_report": self.save_report,
            "report_dir": str(self.report_dir) if self.report_dir else None,
        }


@dataclass
class ValidationError:
    """A single validation error."""
    path: str
    message: str
    severity: str = "error"  # "error" or "warning"


@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def __str__(self) -> str:
        if self.valid:
            msg = "Valid"
            if self.warnings:
                msg += f" ({self.warning_count} warnings)"
            return msg
        return f"Invalid: {self.error_count} errors, {self.warning_count} warnings"
