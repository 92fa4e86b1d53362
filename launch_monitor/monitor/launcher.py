"""Session launcher.

Submits a launch (or rerun) request and builds the ExecutionSession for
it. The launcher never attaches channels; the coordinator does that after
tearing down whatever the slot was monitoring before.
"""

import logging
from typing import TYPE_CHECKING, Iterable

from ..errors import LaunchFailure
from .session import ExecutionSession, ExecutionStatus, SessionKind

if TYPE_CHECKING:
    from ..transport.http_client import LauncherHttpClient, LaunchResponse

logger = logging.getLogger(__name__)


class SessionLauncher:
    """Creates execution sessions from launch requests."""

    def __init__(self, client: "LauncherHttpClient"):
        self.client = client

    def launch(self, test_ids: Iterable[str]) -> ExecutionSession:
        """Launch a normal run of the given tests.

        Raises:
            LaunchFailure: If nothing is selected or the backend refuses.
        """
        test_ids = list(test_ids)
        if not test_ids:
            raise LaunchFailure("No tests selected")

        response = self.client.execute(test_ids)
        logger.info(
            "Launched execution %s with %d tests", response.execution_id, len(test_ids)
        )
        return _new_session(response, SessionKind.NORMAL, selected=test_ids)

    def launch_rerun(self, report_id: str) -> ExecutionSession:
        """Launch the failed tests of a report.

        Raises:
            NoFailedTestsError: If the report has no failed tests.
            LaunchFailure: For any other refusal.
        """
        if not report_id:
            raise LaunchFailure("No report selected for rerun")

        response = self.client.rerun_failed(report_id)
        logger.info(
            "Launched rerun %s of report %s", response.execution_id, report_id
        )
        return _new_session(
            response, SessionKind.RERUN, source_report_id=report_id
        )


def _new_session(
    response: "LaunchResponse",
    kind: SessionKind,
    selected: Iterable[str] = (),
    source_report_id=None,
) -> ExecutionSession:
    # A fresh session is never terminal, whatever the launch response says;
    # only the poll channel may finish it.
    try:
        reported = ExecutionStatus.parse(response.status)
    except ValueError:
        reported = ExecutionStatus.PENDING
    status = (
        ExecutionStatus.RUNNING
        if reported is ExecutionStatus.RUNNING
        else ExecutionStatus.PENDING
    )
    return ExecutionSession(
        execution_id=response.execution_id,
        kind=kind,
        source_report_id=source_report_id,
        status=status,
        initial_status=response.status,
        selected_test_ids=list(selected),
    )
