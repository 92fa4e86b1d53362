"""Monitor module - execution sessions and their channels."""

from .session import (
    ExecutionSession,
    ExecutionStatus,
    SessionKind,
    TERMINAL_STATUSES,
    TestOutcome,
)
from .notifications import (
    Connected,
    ConnectionClosed,
    LogAppended,
    Notification,
    PollFailed,
    RerunReportFound,
    RerunReportMissing,
    StatusObserved,
    StreamDegraded,
)
from .launcher import SessionLauncher
from .push_listener import PushListener
from .status_poller import StatusPoller
from .combination import (
    CombinationState,
    ReportCombinationDriver,
    ReportCombinationTask,
    newest_report,
)
from .coordinator import MAIN_SLOT, RERUN_SLOT, ExecutionCoordinator, MonitorSlot

__all__ = [
    "ExecutionSession",
    "ExecutionStatus",
    "SessionKind",
    "TERMINAL_STATUSES",
    "TestOutcome",
    "Connected",
    "ConnectionClosed",
    "LogAppended",
    "Notification",
    "PollFailed",
    "RerunReportFound",
    "RerunReportMissing",
    "StatusObserved",
    "StreamDegraded",
    "SessionLauncher",
    "PushListener",
    "StatusPoller",
    "CombinationState",
    "ReportCombinationDriver",
    "ReportCombinationTask",
    "newest_report",
    "MAIN_SLOT",
    "RERUN_SLOT",
    "ExecutionCoordinator",
    "MonitorSlot",
]
