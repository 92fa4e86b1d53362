"""Tests for JsonReporter."""

import json
from pathlib import Path

import pytest

from launch_monitor.monitor.combination import CombinationState, ReportCombinationTask
from launch_monitor.monitor.session import (
    ExecutionSession,
    ExecutionStatus,
    SessionKind,
    TestOutcome,
)
from launch_monitor.reporting import JsonReporter
from launch_monitor.transport.http_client import ReportSummary


@pytest.fixture
def reporter() -> JsonReporter:
    return JsonReporter()


def finished_session(status: ExecutionStatus, *outcomes: TestOutcome) -> ExecutionSession:
    session = ExecutionSession("e1", status=status, launched_at=10.0, report_id="r1")
    session.finished_at = 12.0
    session.logs = ["Running", "Done"]
    session.test_results = {o.test_id: o for o in outcomes}
    return session


class TestGenerate:
    """Tests for JsonReporter.generate."""

    def test_passed_run(self, reporter) -> None:
        session = finished_session(
            ExecutionStatus.COMPLETED,
            TestOutcome("t1", "PASSED", display_name="add()"),
            TestOutcome("t2", "SUCCESSFUL"),
            TestOutcome("t3", "SKIPPED"),
        )

        report = reporter.generate(session)

        assert report["status"] == "passed"
        assert report["execution_status"] == "COMPLETED"
        assert report["summary"] == {
            "total": 3, "passed": 2, "failed": 0, "skipped": 1, "duration_ms": 2000,
        }
        assert report["tests"][0] == {"id": "t1", "name": "add()", "status": "PASSED", "message": None}
        assert report["logs"] == ["Running", "Done"]
        assert report["report_id"] == "r1"

    @pytest.mark.parametrize(
        "status, expected",
        [
            (ExecutionStatus.FAILED, "failed"),
            (ExecutionStatus.CANCELLED, "cancelled"),
            (ExecutionStatus.RUNNING, "running"),
        ],
    )
    def test_overall_status(self, reporter, status, expected) -> None:
        assert reporter.generate(finished_session(status))["status"] == expected

    def test_completed_with_failures(self, reporter) -> None:
        session = finished_session(ExecutionStatus.COMPLETED, TestOutcome("t1", "FAILED"))
        assert reporter.generate(session)["status"] == "failed"

    def test_inconclusive(self, reporter) -> None:
        session = finished_session(ExecutionStatus.RUNNING)
        session.inconclusive = True
        session.errors.append("Status polling stopped: HTTP 500")

        report = reporter.generate(session)

        assert report["status"] == "inconclusive"
        assert report["errors"] == ["Status polling stopped: HTTP 500"]

    def test_without_session(self, reporter) -> None:
        report = reporter.generate(None, error="No tests selected")

        assert report["status"] == "failed"
        assert report["execution_id"] is None
        assert report["errors"] == ["No tests selected"]

    def test_without_logs(self, reporter) -> None:
        report = reporter.generate(finished_session(ExecutionStatus.COMPLETED), include_logs=False)
        assert report["logs"] == []

    def test_combination(self, reporter) -> None:
        session = finished_session(ExecutionStatus.COMPLETED)
        session.kind = SessionKind.RERUN
        session.source_report_id = "r0"
        task = ReportCombinationTask(
            "r0", "e1", 1, rerun_report_id="r1",
            combined_report=ReportSummary("r2"), state=CombinationState.COMBINED,
        )

        report = reporter.generate(session, combination=task)

        assert report["kind"] == "RERUN"
        assert report["source_report_id"] == "r0"
        assert report["combination"]["combinedReportId"] == "r2"


class TestFlowOutput:
    """Tests for JsonReporter.generate_flow_output."""

    def test_success(self, reporter) -> None:
        report = reporter.generate(finished_session(ExecutionStatus.COMPLETED, TestOutcome("t1", "PASSED")))

        output = reporter.generate_flow_output(report, command="run", report_path="out.json")

        assert output["success"] is True
        assert output["command"] == "run"
        assert output["message"] == "All tests passed"
        assert output["data"]["execution_id"] == "e1"
        assert output["data"]["report_path"] == "out.json"

    def test_failures(self, reporter) -> None:
        report = reporter.generate(finished_session(
            ExecutionStatus.COMPLETED, TestOutcome("t1", "PASSED"), TestOutcome("t2", "FAILED"),
        ))

        output = reporter.generate_flow_output(report)

        assert output["success"] is False
        assert output["message"] == "1 of 2 tests failed"

    def test_error_message_wins(self, reporter) -> None:
        report = reporter.generate(None, error="Rerun failed: HTTP 500")

        output = reporter.generate_flow_output(report, command="rerun")

        assert output["success"] is False
        assert output["message"] == "Execution failed: Rerun failed: HTTP 500"

    def test_combined_report_in_message(self, reporter) -> None:
        task = ReportCombinationTask(
            "r0", "e1", 1, rerun_report_id="r1",
            combined_report=ReportSummary("r2"), state=CombinationState.COMBINED,
        )
        report = reporter.generate(finished_session(ExecutionStatus.COMPLETED), combination=task)

        output = reporter.generate_flow_output(report, command="rerun")

        assert output["success"] is True
        assert output["message"].endswith("(combined report r2)")
        assert output["data"]["combination"]["state"] == "COMBINED"


class TestSave:
    """Tests for saving reports."""

    def test_save_creates_directories(self, reporter, tmp_path: Path) -> None:
        report = reporter.generate(finished_session(ExecutionStatus.COMPLETED))
        path = tmp_path / "nested" / "report.json"

        saved = reporter.save(report, path)

        assert saved == path
        assert json.loads(path.read_text(encoding="utf-8"))["execution_id"] == "e1"

    def test_to_json_string(self, reporter) -> None:
        assert reporter.to_json_string({"a": 1}, pretty=False) == '{"a": 1}'
        assert "\n" in reporter.to_json_string({"a": 1})
