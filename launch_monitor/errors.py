"""Error types for launch-monitor.

Exception hierarchy:
    LauncherError (base)
    +-- TransportFailure: an HTTP exchange with the backend failed
    +-- LaunchFailure: a launch request failed, no session was created
    |   +-- NoFailedTestsError: rerun requested for a report without failures
    +-- CancelFailure: the backend rejected a cancel request
    +-- CombineFailure: the rerun report was not found or combine was rejected
    +-- ConfigError: invalid configuration
"""

from typing import Optional


class LauncherError(Exception):
    """Base exception for all launch-monitor errors."""


class TransportFailure(LauncherError):
    """Raised when a request to the backend fails.

    Covers connection errors, timeouts, non-success HTTP statuses and
    undecodable response bodies.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LaunchFailure(LauncherError):
    """Raised when a launch or rerun request fails."""


class NoFailedTestsError(LaunchFailure):
    """Raised when a rerun is requested for a report with no failed tests."""


class CancelFailure(LauncherError):
    """Raised when a cancel request is rejected."""


class CombineFailure(LauncherError):
    """Raised when report combination cannot proceed."""


class ConfigError(LauncherError):
    """Raised for invalid configuration files or values."""
