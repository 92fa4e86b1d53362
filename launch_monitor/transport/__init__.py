"""Transport module - HTTP and server-sent events."""

from .http_client import (
    LauncherHttpClient,
    LaunchResponse,
    LogFileSummary,
    ReportSummary,
    StatusSnapshot,
)
from .retry_policy import RetryPolicy, no_retry_policy
from .sse import ServerSentEvent, iter_events

__all__ = [
    "LauncherHttpClient",
    "LaunchResponse",
    "LogFileSummary",
    "ReportSummary",
    "StatusSnapshot",
    "RetryPolicy",
    "no_retry_policy",
    "ServerSentEvent",
    "iter_events",
]
