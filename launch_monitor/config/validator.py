"""Config validator for launch-monitor."""

from urllib.parse import urlparse

from .schema import MonitorConfig, ValidationError, ValidationResult


def validate_config(config: MonitorConfig) -> ValidationResult:
    """Validate a MonitorConfig object.

    Checks:
    - base_url is an http(s) URL with a host
    - intervals and timeouts are positive
    - retries is not negative

    Args:
        config: Config to validate.

    Returns:
        ValidationResult with errors and warnings.
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []

    parsed = urlparse(config.base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(ValidationError(
            path="base_url",
            message=f"Invalid base URL '{config.base_url}'. Expected http(s)://host[:port].",
        ))

    for name in ("poll_interval", "request_timeout", "stream_connect_timeout", "run_timeout"):
        value = getattr(config, name)
        if value <= 0:
            errors.append(ValidationError(
                path=name,
                message=f"'{name}' must be positive, got {value}.",
            ))

    if config.rerun_report_delay < 0:
        errors.append(ValidationError(
            path="rerun_report_delay",
            message=f"'rerun_report_delay' must not be negative, got {config.rerun_report_delay}.",
        ))

    if config.retries < 0:
        errors.append(ValidationError(
            path="retries",
            message=f"'retries' must not be negative, got {config.retries}.",
        ))

    if config.poll_interval < 0.2:
        warnings.append(ValidationError(
            path="poll_interval",
            message="Poll interval below 0.2s puts heavy load on the backend.",
            severity="warning",
        ))

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )
