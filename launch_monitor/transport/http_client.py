"""HTTP client for the test launcher backend.

Implements the backend protocol:
- GET  /api/discover               - Discover tests
- POST /api/execute                - Launch selected tests
- POST /api/reports/:id/rerun      - Launch failed tests of a report
- GET  /api/status/:id             - Poll execution status
- POST /api/cancel/:id             - Cancel an execution
- GET  /api/stream/:id             - Server-sent log events
- GET  /api/reports                - List reports
- POST /api/reports/combine        - Combine two reports
- GET  /api/logs, /api/logs/:id    - Archived execution logs
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from ..discovery.tree import TestTree
from ..errors import (
    CancelFailure,
    CombineFailure,
    LaunchFailure,
    NoFailedTestsError,
    TransportFailure,
)
from ..monitor.session import ExecutionStatus, TestOutcome
from .retry_policy import RetryPolicy, no_retry_policy


@dataclass
class LaunchResponse:
    """Backend answer to a launch or rerun request."""
    execution_id: str
    status: str = "RUNNING"
    timestamp: Optional[str] = None


@dataclass
class StatusSnapshot:
    """Authoritative execution status."""
    status: ExecutionStatus
    test_results: list[TestOutcome] = field(default_factory=list)
    report_id: Optional[str] = None


@dataclass
class ReportSummary:
    """Metadata of a persisted report."""
    report_id: str
    execution_id: Optional[str] = None
    timestamp: Optional[str] = None
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    is_combined: bool = False
    combined_report_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReportSummary":
        return cls(
            report_id=data["reportId"],
            execution_id=data.get("executionId"),
            timestamp=data.get("timestamp"),
            total_tests=data.get("totalTests", 0),
            passed_tests=data.get("passedTests", 0),
            failed_tests=data.get("failedTests", 0),
            skipped_tests=data.get("skippedTests", 0),
            is_combined=bool(data.get("combined", data.get("isCombined", False))),
            combined_report_ids=list(data.get("combinedReportIds") or []),
        )


@dataclass
class LogFileSummary:
    """Metadata of an archived execution log."""
    log_id: str
    execution_id: Optional[str] = None
    timestamp: Optional[str] = None
    file_size_bytes: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogFileSummary":
        return cls(
            log_id=data["logId"],
            execution_id=data.get("executionId"),
            timestamp=data.get("timestamp"),
            file_size_bytes=data.get("fileSizeBytes", 0),
        )


class LauncherHttpClient:
    """HTTP client for the test launcher backend.

    Every failed exchange surfaces as a TransportFailure, or as the
    operation-specific error (LaunchFailure, CancelFailure, CombineFailure)
    for user-initiated actions.
    """

    def __init__(
        self,
        base_url: str,
        retry_policy: Optional[RetryPolicy] = None,
        request_timeout: float = 30.0,
        stream_connect_timeout: float = 10.0,
    ):
        """Initialize HTTP client.

        Args:
            base_url: Base URL of the backend (e.g., http://localhost:8080).
            retry_policy: Retry policy for read-only catalogue requests.
            request_timeout: Default request timeout in seconds.
            stream_connect_timeout: Connect timeout for the log stream. The
                stream itself has no read timeout.
        """
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or no_retry_policy()
        self.request_timeout = request_timeout
        self.stream_connect_timeout = stream_connect_timeout
        self._session = requests.Session()
        self._session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def discover_tests(self, package_filter: Optional[str] = None) -> TestTree:
        """Discover tests on the backend.

        GET /api/discover[?packageFilter=...]
        """
        params = {"packageFilter": package_filter} if package_filter else None
        response = self._request("GET", "/api/discover", params=params, retry=True)
        return TestTree.from_dict(self._json(response))

    def execute(self, test_ids: list[str]) -> LaunchResponse:
        """Launch the selected tests.

        POST /api/execute

        Raises:
            LaunchFailure: If the selection is empty or the request fails.
        """
        if not test_ids:
            raise LaunchFailure("No tests selected")

        try:
            response = self._request(
                "POST",
                "/api/execute",
                json={"selectedTestIds": list(test_ids)},
            )
            return self._launch_response(response)
        except TransportFailure as e:
            raise LaunchFailure(f"Execution failed: {e}") from e

    def rerun_failed(self, report_id: str) -> LaunchResponse:
        """Launch the failed tests of a report.

        POST /api/reports/:report_id/rerun

        Raises:
            NoFailedTestsError: If the report has no failed tests.
            LaunchFailure: If the report is unknown or the request fails.
        """
        try:
            response = self._request("POST", f"/api/reports/{report_id}/rerun")
            return self._launch_response(response)
        except TransportFailure as e:
            if e.status_code == 400:
                raise NoFailedTestsError(
                    f"Report {report_id} has no failed tests to rerun"
                ) from e
            if e.status_code == 404:
                raise LaunchFailure(f"Report not found: {report_id}") from e
            raise LaunchFailure(f"Rerun failed: {e}") from e

    def get_status(self, execution_id: str) -> StatusSnapshot:
        """Get the current status of an execution.

        GET /api/status/:execution_id
        """
        response = self._request("GET", f"/api/status/{execution_id}")
        data = self._json(response)

        try:
            return StatusSnapshot(
                status=ExecutionStatus.parse(data["status"]),
                test_results=[
                    TestOutcome.from_dict(r) for r in data.get("testResults") or []
                ],
                report_id=data.get("reportId") or None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TransportFailure(f"Malformed status response: {e}") from e

    def cancel(self, execution_id: str) -> None:
        """Ask the backend to cancel an execution.

        POST /api/cancel/:execution_id

        Raises:
            CancelFailure: If the backend rejects the request.
        """
        try:
            self._request("POST", f"/api/cancel/{execution_id}")
        except TransportFailure as e:
            raise CancelFailure(f"Cancellation failed: {e}") from e

    def open_log_stream(self, execution_id: str) -> requests.Response:
        """Open the server-sent log stream of an execution.

        GET /api/stream/:execution_id

        The caller owns the returned streaming response and must close it.
        """
        return self._request(
            "GET",
            f"/api/stream/{execution_id}",
            headers={"Accept": "text/event-stream"},
            stream=True,
            timeout=(self.stream_connect_timeout, None),
        )

    def list_reports(self) -> list[ReportSummary]:
        """List persisted reports, newest first.

        GET /api/reports
        """
        response = self._request("GET", "/api/reports", retry=True)
        data = self._json(response)
        try:
            return [ReportSummary.from_dict(r) for r in data]
        except (KeyError, TypeError) as e:
            raise TransportFailure(f"Malformed report listing: {e}") from e

    def combine_reports(self, report_id_a: str, report_id_b: str) -> ReportSummary:
        """Combine two reports into a new one.

        POST /api/reports/combine with [report_id_a, report_id_b]

        Raises:
            CombineFailure: If the backend rejects the pair.
        """
        try:
            response = self._request(
                "POST",
                "/api/reports/combine",
                json=[report_id_a, report_id_b],
            )
            return ReportSummary.from_dict(self._json(response))
        except TransportFailure as e:
            raise CombineFailure(f"Combining reports failed: {e}") from e
        except (KeyError, TypeError) as e:
            raise CombineFailure(f"Malformed combine response: {e}") from e

    def list_logs(self) -> list[LogFileSummary]:
        """List archived execution logs.

        GET /api/logs
        """
        response = self._request("GET", "/api/logs", retry=True)
        data = self._json(response)
        try:
            return [LogFileSummary.from_dict(entry) for entry in data]
        except (KeyError, TypeError) as e:
            raise TransportFailure(f"Malformed log listing: {e}") from e

    def get_log(self, log_id: str) -> str:
        """Fetch the content of an archived log.

        GET /api/logs/:log_id
        """
        response = self._request(
            "GET",
            f"/api/logs/{log_id}",
            headers={"Accept": "text/plain"},
            retry=True,
        )
        return response.text

    def health_check(self) -> bool:
        """Check if the backend is reachable.

        Returns:
            True if server responds.
        """
        try:
            response = self._session.get(f"{self.base_url}/api/reports", timeout=5)
            return response.status_code < 500
        except (requests.ConnectionError, requests.Timeout):
            return False

    def _launch_response(self, response: requests.Response) -> LaunchResponse:
        data = self._json(response)
        execution_id = data.get("executionId") if isinstance(data, dict) else None
        if not execution_id:
            raise LaunchFailure("Backend response did not include an execution id")
        return LaunchResponse(
            execution_id=str(execution_id),
            status=data.get("status") or "RUNNING",
            timestamp=data.get("timestamp"),
        )

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(
                f"Invalid JSON from {response.url}: {e}",
                status_code=response.status_code,
            ) from e

    def _request(
        self,
        method: str,
        path: str,
        retry: bool = False,
        **kwargs,
    ) -> requests.Response:
        """Execute an HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: Path below the base URL.
            retry: Apply the client's retry policy. Without it the
                request fails on the first error.
            **kwargs: Additional arguments for requests.

        Returns:
            Response object with a 2xx status.

        Raises:
            TransportFailure: On connection errors or non-2xx responses.
        """
        url = f"{self.base_url}{path}"
        kwargs.setdefault("timeout", self.request_timeout)
        policy = self.retry_policy if retry else no_retry_policy()
        attempt = 0

        while True:
            try:
                response = self._session.request(method, url, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                if policy.should_retry(method, attempt):
                    time.sleep(policy.get_delay(attempt))
                    attempt += 1
                    continue
                raise TransportFailure(f"{method} {path} failed: {e}") from e
            except requests.RequestException as e:
                raise TransportFailure(f"{method} {path} failed: {e}") from e

            if response.status_code < 400:
                return response

            if policy.should_retry(method, attempt, response.status_code):
                response.close()
                time.sleep(policy.get_delay(attempt))
                attempt += 1
                continue

            reason = response.reason or "error"
            response.close()
            raise TransportFailure(
                f"{method} {path} returned HTTP {response.status_code} {reason}",
                status_code=response.status_code,
            )

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
