"""Run executor - drives a monitored execution from the command line.

Coordinates the full flow:
1. Launch the selection (or rerun a report's failed tests)
2. Stream logs and poll status until the execution finishes
3. For reruns: wait for the rerun report and combine it
4. Generate report
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

import click

from ..config.schema import MonitorConfig
from ..errors import CombineFailure, LaunchFailure
from ..monitor.combination import CombinationState, ReportCombinationTask
from ..monitor.coordinator import MAIN_SLOT, RERUN_SLOT, ExecutionCoordinator
from ..monitor.notifications import (
    LogAppended,
    Notification,
    RerunReportFound,
    RerunReportMissing,
    StatusObserved,
    StreamDegraded,
)
from ..monitor.session import ExecutionSession
from ..reporting.json_reporter import JsonReporter


@dataclass
class ExecutionResult:
    """Complete result of a monitored execution."""
    command: str
    session: Optional[ExecutionSession] = None
    combination: Optional[ReportCombinationTask] = None
    error: Optional[str] = None
    report_path: Optional[str] = None

    def to_report(self) -> dict:
        return JsonReporter().generate(
            self.session,
            combination=self.combination,
            error=self.error,
        )

    def to_flow_json(self) -> dict:
        """Convert to CLI JSON output."""
        reporter = JsonReporter()
        return reporter.generate_flow_output(
            self.to_report(), command=self.command, report_path=self.report_path
        )


class RunExecutor:
    """Runs one execution to completion on behalf of the CLI.

    Prints streamed log lines and status changes as they are applied.
    """

    def __init__(
        self,
        coordinator: ExecutionCoordinator,
        config: Optional[MonitorConfig] = None,
        echo: Optional[Callable[[str], None]] = None,
        show_logs: bool = True,
    ):
        """Initialize run executor.

        Args:
            coordinator: Coordinator that owns the sessions.
            config: Monitoring configuration.
            echo: Progress output (default: click.echo to stderr).
            show_logs: Print streamed log lines.
        """
        self.coordinator = coordinator
        self.config = config or MonitorConfig()
        self.show_logs = show_logs
        self._echo = echo or (lambda message: click.echo(message, err=True))
        self._reporter = JsonReporter()
        self._last_status: dict[str, str] = {}
        coordinator.add_listener(self._on_update)

    def run(self, test_ids: Iterable[str]) -> ExecutionResult:
        """Launch tests and wait for them to finish."""
        result = ExecutionResult(command="run")

        try:
            session = self.coordinator.launch(test_ids, slot=MAIN_SLOT)
            self._echo(f"Execution started: {session.execution_id}")
            result.session = self._wait(MAIN_SLOT)
        except LaunchFailure as e:
            result.error = str(e)
            self._echo(f"ERROR: {result.error}")

        self._finish(result)
        return result

    def rerun(self, report_id: str, combine: bool = True) -> ExecutionResult:
        """Rerun the failed tests of a report, then optionally combine the
        rerun report with the original."""
        result = ExecutionResult(command="rerun")

        try:
            session = self.coordinator.rerun(report_id, slot=RERUN_SLOT)
            self._echo(f"Rerun of {report_id} started: {session.execution_id}")
            result.session = self._wait(RERUN_SLOT)
        except LaunchFailure as e:
            result.error = str(e)
            self._echo(f"ERROR: {result.error}")
            self._finish(result)
            return result

        if self.coordinator.combination_task is not None:
            self._echo("Waiting for rerun report...")
            task = self.coordinator.wait_for_rerun_report(
                timeout=self.config.rerun_report_delay + self.config.request_timeout
            )
            result.combination = task
            if task is not None and task.state is CombinationState.READY and combine:
                try:
                    combined = self.coordinator.combination.combine()
                    self._echo(f"Combined report: {combined.report_id}")
                except CombineFailure as e:
                    result.error = str(e)
            elif task is not None and task.state is CombinationState.FAILED:
                result.error = task.error
            elif task is not None and task.state is CombinationState.WAITING:
                result.error = "Timed out waiting for the rerun report"

        self._finish(result)
        return result

    def _wait(self, slot: str) -> Optional[ExecutionSession]:
        session = self.coordinator.wait(slot, timeout=self.config.run_timeout)
        if session is not None and session.active:
            session = self.coordinator.abandon(
                slot, f"Execution did not finish within {self.config.run_timeout:.0f}s"
            )
        return session

    def _finish(self, result: ExecutionResult) -> None:
        if result.session is not None:
            self._print_summary(result.session)
        if self.config.save_report:
            result.report_path = self._save_report(result)

    def _on_update(
        self, slot: str, session: Optional[ExecutionSession], notification: Notification
    ) -> None:
        """Coordinator callback for applied notifications."""
        if isinstance(notification, LogAppended):
            if self.show_logs:
                self._echo(notification.text)
        elif isinstance(notification, StatusObserved) and session is not None:
            status = session.status.value
            if self._last_status.get(slot) != status:
                self._last_status[slot] = status
                self._echo(f"[{slot}] {session.execution_id}: {status}")
        elif isinstance(notification, StreamDegraded):
            self._echo(f"WARNING: log stream lost ({notification.reason})")
        elif isinstance(notification, RerunReportFound):
            self._echo(f"Rerun report: {notification.report_id}")
        elif isinstance(notification, RerunReportMissing):
            self._echo(f"WARNING: {notification.reason}")

    def _print_summary(self, session: ExecutionSession) -> None:
        """Print test results summary."""
        self._echo(
            f"\nResults: {session.count_results('PASSED')} passed, "
            f"{session.count_results('FAILED')} failed, "
            f"{session.count_results('SKIPPED')} skipped"
        )
        for outcome in session.test_results.values():
            name = outcome.display_name or outcome.test_id
            detail = f": {outcome.message}" if outcome.message else ""
            self._echo(f"  [{outcome.status}] {name}{detail}")
        if session.report_id:
            self._echo(f"Report: {session.report_id}")
        for error in session.errors:
            self._echo(f"WARNING: {error}")

    def _save_report(self, result: ExecutionResult) -> Optional[str]:
        """Save the session summary to file."""
        report_dir = self.config.report_dir or Path(".")
        execution_id = result.session.execution_id if result.session else "failed"
        path = report_dir / f"execution_{execution_id}_{int(time.time())}.json"
        try:
            saved_path = self._reporter.save(result.to_report(), path)
        except OSError as e:
            self._echo(f"Warning: Failed to save report: {e}")
            return None
        self._echo(f"Report saved: {saved_path}")
        return str(saved_path)