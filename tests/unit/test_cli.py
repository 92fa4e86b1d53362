"""Tests for the launch-monitor CLI."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from launch_monitor.cli import format_file_size, main
from launch_monitor.config import URL_ENV_VAR
from launch_monitor.discovery import TestTree
from launch_monitor.errors import CancelFailure, NoFailedTestsError, TransportFailure
from launch_monitor.monitor.session import ExecutionStatus, TestOutcome
from launch_monitor.transport.http_client import (
    LaunchResponse,
    LogFileSummary,
    ReportSummary,
    StatusSnapshot,
)

TREE = {
    "testClasses": [
        {
            "uniqueId": "class-calc",
            "fullyQualifiedName": "com.example.CalculatorTest",
            "testMethods": [
                {"uniqueId": "calc-add", "methodName": "add"},
                {"uniqueId": "calc-div", "methodName": "divide"},
            ],
        },
    ],
    "totalTests": 2,
}


@pytest.fixture(autouse=True)
def no_url_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(URL_ENV_VAR, raising=False)


@pytest.fixture
def client() -> MagicMock:
    """Client returned by every LauncherHttpClient(...) call in the CLI."""
    client = MagicMock()
    client.__enter__.return_value = client
    client.discover_tests.return_value = TestTree.from_dict(TREE)
    client.execute.return_value = LaunchResponse("e1")
    client.get_status.return_value = StatusSnapshot(
        ExecutionStatus.COMPLETED, [TestOutcome("calc-add", "PASSED")], "r1"
    )
    stream = MagicMock()
    stream.iter_lines.return_value = iter(["event: log", "data: hello", ""])
    client.open_log_stream.return_value = stream
    with patch("launch_monitor.cli.LauncherHttpClient", return_value=client) as client_cls:
        client.cls = client_cls
        yield client


def invoke(*args: str):
    return CliRunner().invoke(main, list(args))


def last_json(result) -> dict:
    return json.loads(result.stdout.strip().splitlines()[-1])


class TestDiscover:
    """Tests for the discover command."""

    def test_discover(self, client) -> None:
        result = invoke("discover", "--package", "com.example")

        assert result.exit_code == 0
        client.discover_tests.assert_called_once_with("com.example")
        output = last_json(result)
        assert output["success"] is True
        assert output["data"]["total_tests"] == 2
        assert output["data"]["classes"][0]["name"] == "com.example.CalculatorTest"

    def test_url_option(self, client) -> None:
        invoke("--url", "http://ci:9090/", "discover")

        assert client.cls.call_args.args == ("http://ci:9090",)

    def test_backend_error(self, client) -> None:
        client.discover_tests.side_effect = TransportFailure("GET /api/discover failed: refused")

        result = invoke("discover")

        assert result.exit_code == 1
        assert last_json(result) == {
            "success": False,
            "command": "discover",
            "data": None,
            "message": "GET /api/discover failed: refused",
        }


class TestRun:
    """Tests for the run command."""

    def test_run(self, client) -> None:
        result = invoke("run", "calc-add", "--poll-interval", "0.01", "--timeout", "5")

        assert result.exit_code == 0, result.output
        client.execute.assert_called_once_with(["calc-add"])
        output = last_json(result)
        assert output["success"] is True
        assert output["command"] == "run"
        assert output["data"]["report_id"] == "r1"

    def test_run_class(self, client) -> None:
        result = invoke("run", "--class", "com.example.CalculatorTest", "--poll-interval", "0.01")

        assert result.exit_code == 0, result.output
        client.execute.assert_called_once_with(["calc-add", "calc-div"])

    def test_run_all(self, client) -> None:
        invoke("run", "--all", "--poll-interval", "0.01")

        client.execute.assert_called_once_with(["calc-add", "calc-div"])

    def test_unknown_class(self, client) -> None:
        result = invoke("run", "--class", "com.example.Missing")

        assert result.exit_code == 1
        assert "Test class not found" in last_json(result)["message"]
        client.execute.assert_not_called()

    def test_nothing_selected(self, client) -> None:
        result = invoke("run")

        assert result.exit_code == 1
        assert last_json(result)["message"] == "No tests selected"

    def test_failed_tests_exit_nonzero(self, client) -> None:
        client.get_status.return_value = StatusSnapshot(
            ExecutionStatus.COMPLETED, [TestOutcome("calc-add", "FAILED")], "r1"
        )

        result = invoke("run", "calc-add", "--poll-interval", "0.01")

        assert result.exit_code == 1
        assert last_json(result)["message"] == "1 of 1 tests failed"

    def test_save_report(self, client, tmp_path) -> None:
        result = invoke("run", "calc-add", "--poll-interval", "0.01", "--report-dir", str(tmp_path))

        report_path = last_json(result)["data"]["report_path"]
        assert report_path.startswith(str(tmp_path))

    def test_invalid_config(self, client) -> None:
        result = invoke("--url", "not-a-url", "run", "calc-add")

        assert result.exit_code == 1
        output = last_json(result)
        assert output["command"] == "config"
        assert "base_url" in output["message"]

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_non_positive_poll_interval_rejected(self, client, value) -> None:
        result = invoke("run", "calc-add", "--poll-interval", value)

        assert result.exit_code == 1
        output = last_json(result)
        assert output["command"] == "run"
        assert "poll_interval" in output["message"]
        client.execute.assert_not_called()

    def test_non_positive_timeout_rejected(self, client) -> None:
        result = invoke("run", "calc-add", "--timeout", "0")

        assert result.exit_code == 1
        assert "run_timeout" in last_json(result)["message"]
        client.execute.assert_not_called()


class TestRerun:
    """Tests for the rerun command."""

    def test_no_failed_tests(self, client) -> None:
        client.rerun_failed.side_effect = NoFailedTestsError("Report r1 has no failed tests to rerun")

        result = invoke("rerun", "r1")

        assert result.exit_code == 1
        output = last_json(result)
        assert output["command"] == "rerun"
        assert output["message"] == "Execution failed: Report r1 has no failed tests to rerun"

    def test_poll_interval_rejected(self, client) -> None:
        result = invoke("rerun", "r1", "--poll-interval", "0")

        assert result.exit_code == 1
        assert last_json(result)["command"] == "rerun"
        client.rerun_failed.assert_not_called()


class TestCatalogue:
    """Tests for cancel, reports, combine and logs."""

    def test_cancel(self, client) -> None:
        result = invoke("cancel", "e1")

        assert result.exit_code == 0
        client.cancel.assert_called_once_with("e1")
        assert last_json(result)["message"] == "Cancellation requested"

    def test_pretty_output(self, client) -> None:
        result = invoke("--pretty", "cancel", "e1")

        assert result.exit_code == 0
        assert len(result.stdout.strip().splitlines()) > 1
        assert json.loads(result.stdout)["data"] == {"execution_id": "e1"}

    def test_cancel_rejected(self, client) -> None:
        client.cancel.side_effect = CancelFailure("Cancellation failed: HTTP 404")

        result = invoke("cancel", "e1")

        assert result.exit_code == 1
        assert last_json(result)["success"] is False

    def test_reports(self, client) -> None:
        client.list_reports.return_value = [
            ReportSummary("r2", execution_id="e2", timestamp="2024-01-01_10-05-00", failed_tests=1),
        ]

        result = invoke("reports")

        report = last_json(result)["data"]["reports"][0]
        assert report["report_id"] == "r2"
        assert report["failed"] == 1

    def test_combine(self, client) -> None:
        client.combine_reports.return_value = ReportSummary("r3", combined_report_ids=["r1", "r2"])

        result = invoke("combine", "r1", "r2")

        client.combine_reports.assert_called_once_with("r1", "r2")
        assert last_json(result)["data"] == {"report_id": "r3", "combined_report_ids": ["r1", "r2"]}

    def test_list_logs(self, client) -> None:
        client.list_logs.return_value = [LogFileSummary("l1", execution_id="e1", file_size_bytes=1536)]

        result = invoke("logs")

        assert last_json(result)["data"]["logs"][0]["size"] == "1.5 KB"

    def test_show_log(self, client) -> None:
        client.get_log.return_value = "line 1\nline 2\n"

        result = invoke("logs", "l1")

        assert result.exit_code == 0
        assert result.stdout == "line 1\nline 2\n"


class TestFormatFileSize:
    """Tests for format_file_size."""

    @pytest.mark.parametrize(
        "size, expected",
        [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (1048576, "1 MB"), (3 * 1024 ** 3, "3 GB")],
    )
    def test_sizes(self, size: int, expected: str) -> None:
        assert format_file_size(size) == expected
