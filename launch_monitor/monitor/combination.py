"""Report combination for rerun sessions.

When a rerun finishes, the backend writes its report asynchronously. The
driver waits a fixed delay, then takes the newest report in the listing as
the rerun report. Once that is known the user can combine it with the
original report:

    WAITING --found--> READY --combine()--> COMBINING --> COMBINED
       |                                        |
       +--missing--> FAILED <-------------------+
    any state --close()--> CLOSED

The newest-report pick cannot tell a rerun report apart from one created at
the same time by an unrelated execution.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from ..config.schema import DEFAULT_RERUN_REPORT_DELAY
from ..errors import CombineFailure, TransportFailure
from .notifications import (
    Notification,
    RerunReportFound,
    RerunReportMissing,
)

if TYPE_CHECKING:
    from ..transport.http_client import LauncherHttpClient, ReportSummary

logger = logging.getLogger(__name__)


class CombinationState(str, Enum):
    WAITING = "WAITING"
    READY = "READY"
    COMBINING = "COMBINING"
    COMBINED = "COMBINED"
    FAILED = "FAILED"
    CLOSED = "CLOSED"


@dataclass
class ReportCombinationTask:
    """Tracks one rerun report lookup and its combination."""
    source_report_id: str
    rerun_execution_id: str
    generation: int
    rerun_report_id: Optional[str] = None
    combined_report: Optional["ReportSummary"] = None
    state: CombinationState = CombinationState.WAITING
    error: Optional[str] = None

    @property
    def combined_report_id(self) -> Optional[str]:
        return self.combined_report.report_id if self.combined_report else None

    @property
    def is_finished(self) -> bool:
        return self.state in (
            CombinationState.COMBINED,
            CombinationState.FAILED,
            CombinationState.CLOSED,
        )

    def to_dict(self) -> dict:
        return {
            "sourceReportId": self.source_report_id,
            "rerunReportId": self.rerun_report_id,
            "combinedReportId": self.combined_report_id,
            "state": self.state.value,
            "error": self.error,
        }


def newest_report(reports: list["ReportSummary"]) -> Optional["ReportSummary"]:
    """Pick the most recently created report.

    Reports without a timestamp sort oldest; ties keep listing order.
    """
    if not reports:
        return None
    return max(reports, key=lambda r: r.timestamp or "")


class ReportCombinationDriver:
    """Drives the wait-then-combine sequence for one rerun at a time."""

    def __init__(
        self,
        client: "LauncherHttpClient",
        emit: Callable[[Notification], None],
        wait_delay: float = DEFAULT_RERUN_REPORT_DELAY,
    ):
        """Initialize combination driver.

        Args:
            client: Backend client.
            emit: Callback receiving lookup notifications (thread-safe).
            wait_delay: Seconds to wait before looking up the rerun report.
        """
        self.client = client
        self.wait_delay = wait_delay
        self.task: Optional[ReportCombinationTask] = None
        self.reports: list["ReportSummary"] = []
        self._emit = emit
        self._cancel: Optional[threading.Event] = None

    def start(
        self,
        source_report_id: str,
        rerun_execution_id: str,
        generation: int,
    ) -> ReportCombinationTask:
        """Begin the one-shot wait for the rerun report.

        Any previous task is closed first.
        """
        self.close()

        task = ReportCombinationTask(
            source_report_id=source_report_id,
            rerun_execution_id=rerun_execution_id,
            generation=generation,
        )
        cancel = threading.Event()
        self.task = task
        self._cancel = cancel

        logger.info(
            "Waiting %.1fs for the report of rerun %s", self.wait_delay, rerun_execution_id
        )
        threading.Thread(
            target=self._wait_and_lookup,
            args=(task, cancel),
            name=f"rerun-report-{rerun_execution_id}",
            daemon=True,
        ).start()
        return task

    def _wait_and_lookup(self, task: ReportCombinationTask, cancel: threading.Event) -> None:
        if cancel.wait(self.wait_delay):
            return
        notification = self.lookup(task)
        if not cancel.is_set():
            self._emit(notification)

    def lookup(self, task: ReportCombinationTask) -> Notification:
        """List reports and pick the rerun report candidate."""
        try:
            reports = self.client.list_reports()
        except TransportFailure as e:
            return RerunReportMissing(
                task.rerun_execution_id,
                task.generation,
                reason=f"Could not list reports: {e}",
            )

        candidate = newest_report(reports)
        if candidate is None or candidate.report_id == task.source_report_id:
            return RerunReportMissing(
                task.rerun_execution_id,
                task.generation,
                reason=f"No report found for rerun of {task.source_report_id}",
            )
        return RerunReportFound(
            task.rerun_execution_id,
            task.generation,
            report_id=candidate.report_id,
        )

    def apply(self, notification: Notification) -> bool:
        """Apply a lookup result to the current task.

        Returns:
            False if the notification belongs to no current waiting task.
        """
        task = self.task
        if (
            task is None
            or task.generation != notification.generation
            or task.state is not CombinationState.WAITING
        ):
            logger.debug("Discarding stale rerun report lookup %s", notification)
            return False

        if isinstance(notification, RerunReportFound):
            task.rerun_report_id = notification.report_id
            task.state = CombinationState.READY
            logger.info(
                "Rerun report %s found for source report %s",
                task.rerun_report_id,
                task.source_report_id,
            )
        elif isinstance(notification, RerunReportMissing):
            task.state = CombinationState.FAILED
            task.error = notification.reason
            logger.warning("Rerun report lookup failed: %s", notification.reason)
        else:
            return False
        return True

    def combine(self) -> "ReportSummary":
        """Combine the source report with the rerun report.

        Returns:
            Summary of the combined report.

        Raises:
            CombineFailure: If no rerun report is known or the backend
                rejects the pair.
        """
        task = self.task
        if task is None or task.state is CombinationState.CLOSED:
            raise CombineFailure("No rerun report to combine")
        if task.state is CombinationState.COMBINED and task.combined_report:
            return task.combined_report
        if task.rerun_report_id is None:
            raise CombineFailure(task.error or "Rerun report is not available yet")
        if task.state is CombinationState.COMBINING:
            raise CombineFailure("Combination already in progress")

        task.state = CombinationState.COMBINING
        task.error = None
        try:
            combined = self.client.combine_reports(
                task.source_report_id, task.rerun_report_id
            )
        except CombineFailure as e:
            task.state = CombinationState.FAILED
            task.error = str(e)
            raise

        task.combined_report = combined
        task.state = CombinationState.COMBINED
        logger.info(
            "Combined reports %s + %s into %s",
            task.source_report_id,
            task.rerun_report_id,
            combined.report_id,
        )
        self.refresh_reports()
        return combined

    def refresh_reports(self) -> list["ReportSummary"]:
        """Reload the report listing. A failed refresh keeps the old one."""
        try:
            self.reports = self.client.list_reports()
        except TransportFailure as e:
            logger.warning("Refreshing report listing failed: %s", e)
        return self.reports

    def close(self) -> Optional[ReportCombinationTask]:
        """Cancel a pending wait and drop the current task.

        Returns:
            The closed task, if there was one.
        """
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None

        task, self.task = self.task, None
        if task is not None and task.state in (
            CombinationState.WAITING,
            CombinationState.READY,
        ):
            task.state = CombinationState.CLOSED
        return task
