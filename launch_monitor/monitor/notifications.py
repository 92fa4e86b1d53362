"""Notifications exchanged between channels and the coordinator.

Every notification names the execution it belongs to and the generation of
the slot attachment that produced it, so the coordinator can drop anything
that arrives for a superseded session.
"""

from dataclasses import dataclass, field
from typing import Optional

from .session import ExecutionStatus, TestOutcome


@dataclass(frozen=True)
class Notification:
    execution_id: str
    generation: int


@dataclass(frozen=True)
class Connected(Notification):
    """Push channel reported the connection as established."""


@dataclass(frozen=True)
class LogAppended(Notification):
    """One log line from the push channel."""
    text: str = ""


@dataclass(frozen=True)
class ConnectionClosed(Notification):
    """Push channel ended. by_server is True for a clean end of stream."""
    by_server: bool = True


@dataclass(frozen=True)
class StreamDegraded(Notification):
    """Push channel failed while the session was still being monitored."""
    reason: str = ""


@dataclass(frozen=True)
class StatusObserved(Notification):
    """Authoritative status snapshot from the poll channel."""
    status: ExecutionStatus = ExecutionStatus.RUNNING
    test_results: tuple[TestOutcome, ...] = field(default_factory=tuple)
    report_id: Optional[str] = None
    sequence: int = 0


@dataclass(frozen=True)
class PollFailed(Notification):
    """A status request failed; polling has stopped."""
    reason: str = ""


@dataclass(frozen=True)
class RerunReportFound(Notification):
    """The combination driver picked a rerun report."""
    report_id: str = ""


@dataclass(frozen=True)
class RerunReportMissing(Notification):
    """The combination driver found no usable rerun report."""
    reason: str = ""
