"""Tests for the report combination driver."""

import threading
from unittest.mock import MagicMock

import pytest

from launch_monitor.errors import CombineFailure, TransportFailure
from launch_monitor.monitor.combination import (
    CombinationState,
    ReportCombinationDriver,
    ReportCombinationTask,
    newest_report,
)
from launch_monitor.monitor.notifications import RerunReportFound, RerunReportMissing
from launch_monitor.transport.http_client import LauncherHttpClient, ReportSummary


@pytest.fixture
def client() -> MagicMock:
    return MagicMock(spec=LauncherHttpClient)


@pytest.fixture
def driver(client: MagicMock) -> ReportCombinationDriver:
    combination = ReportCombinationDriver(client, emit=MagicMock(), wait_delay=60.0)
    yield combination
    combination.close()


def ready_task(driver: ReportCombinationDriver, rerun_report_id: str = "r2") -> ReportCombinationTask:
    task = driver.start("r1", "e20", generation=1)
    driver.apply(RerunReportFound("e20", 1, report_id=rerun_report_id))
    return task


class TestNewestReport:
    """Tests for newest_report."""

    def test_picks_latest_timestamp(self) -> None:
        reports = [
            ReportSummary("r1", timestamp="2024-01-01_10-00-00"),
            ReportSummary("r3", timestamp="2024-01-02_09-00-00"),
            ReportSummary("r2", timestamp="2024-01-01_11-00-00"),
        ]
        assert newest_report(reports).report_id == "r3"

    def test_ties_keep_listing_order(self) -> None:
        reports = [
            ReportSummary("a", timestamp="2024-01-01_10-00-00"),
            ReportSummary("b", timestamp="2024-01-01_10-00-00"),
        ]
        assert newest_report(reports).report_id == "a"

    def test_missing_timestamp_sorts_oldest(self) -> None:
        reports = [ReportSummary("old"), ReportSummary("new", timestamp="2024-01-01_10-00-00")]
        assert newest_report(reports).report_id == "new"

    def test_empty(self) -> None:
        assert newest_report([]) is None


class TestLookup:
    """Tests for the rerun report lookup."""

    def test_found(self, driver, client) -> None:
        client.list_reports.return_value = [
            ReportSummary("r2", timestamp="2024-01-01_10-05-00"),
            ReportSummary("r1", timestamp="2024-01-01_10-00-00"),
        ]
        task = driver.start("r1", "e20", generation=7)

        assert driver.lookup(task) == RerunReportFound("e20", 7, report_id="r2")

    @pytest.mark.parametrize(
        "listing",
        [[], [ReportSummary("r1", timestamp="2024-01-01_10-00-00")]],
    )
    def test_not_found(self, driver, client, listing) -> None:
        client.list_reports.return_value = listing
        task = driver.start("r1", "e20", generation=7)

        notification = driver.lookup(task)

        assert isinstance(notification, RerunReportMissing)
        assert "r1" in notification.reason

    def test_listing_failure(self, driver, client) -> None:
        client.list_reports.side_effect = TransportFailure("GET /api/reports returned HTTP 500")
        task = driver.start("r1", "e20", generation=7)

        notification = driver.lookup(task)

        assert isinstance(notification, RerunReportMissing)
        assert "HTTP 500" in notification.reason

    def test_delayed_lookup_emits(self, client) -> None:
        client.list_reports.return_value = [ReportSummary("r2", timestamp="2024-01-01_10-05-00")]
        emitted = []
        done = threading.Event()

        def emit(notification):
            emitted.append(notification)
            done.set()

        driver = ReportCombinationDriver(client, emit=emit, wait_delay=0.0)

        driver.start("r1", "e20", generation=2)

        assert done.wait(2.0)

        assert emitted == [RerunReportFound("e20", 2, report_id="r2")]


class TestApply:
    """Tests for applying lookup results."""

    def test_found_makes_task_ready(self, driver) -> None:
        task = ready_task(driver)

        assert task.state is CombinationState.READY
        assert task.rerun_report_id == "r2"

    def test_missing_fails_task(self, driver) -> None:
        task = driver.start("r1", "e20", generation=1)

        assert driver.apply(RerunReportMissing("e20", 1, reason="nothing"))

        assert task.state is CombinationState.FAILED
        assert task.error == "nothing"

    def test_stale_generation_is_ignored(self, driver) -> None:
        task = driver.start("r1", "e20", generation=2)

        assert not driver.apply(RerunReportFound("e20", 1, report_id="r2"))
        assert task.state is CombinationState.WAITING

    def test_lookup_applies_once(self, driver) -> None:
        task = ready_task(driver)

        assert not driver.apply(RerunReportFound("e20", 1, report_id="r9"))
        assert task.rerun_report_id == "r2"


class TestCombine:
    """Tests for combine."""

    def test_combine(self, driver, client) -> None:
        refreshed = [ReportSummary("r3", is_combined=True), ReportSummary("r2")]
        client.combine_reports.return_value = ReportSummary("r3", is_combined=True)
        client.list_reports.return_value = refreshed
        task = ready_task(driver)

        combined = driver.combine()

        client.combine_reports.assert_called_once_with("r1", "r2")
        assert combined.report_id == "r3"
        assert task.state is CombinationState.COMBINED
        assert task.to_dict()["combinedReportId"] == "r3"
        assert driver.reports == refreshed

    def test_combine_twice_returns_same_report(self, driver, client) -> None:
        client.combine_reports.return_value = ReportSummary("r3")
        ready_task(driver)

        first = driver.combine()
        second = driver.combine()

        assert first is second
        client.combine_reports.assert_called_once()

    def test_combine_before_report_known(self, driver, client) -> None:
        driver.start("r1", "e20", generation=1)

        with pytest.raises(CombineFailure, match="not available"):
            driver.combine()
        client.combine_reports.assert_not_called()

    def test_combine_without_task(self, driver) -> None:
        with pytest.raises(CombineFailure):
            driver.combine()

    def test_rejected_combine_can_be_retried(self, driver, client) -> None:
        client.combine_reports.side_effect = [
            CombineFailure("Combining reports failed: HTTP 500"),
            ReportSummary("r3"),
        ]
        task = ready_task(driver)

        with pytest.raises(CombineFailure):
            driver.combine()
        assert task.state is CombinationState.FAILED
        assert "HTTP 500" in task.error

        assert driver.combine().report_id == "r3"
        assert task.state is CombinationState.COMBINED
        assert task.error is None

    def test_failed_refresh_keeps_combined_result(self, driver, client) -> None:
        client.combine_reports.return_value = ReportSummary("r3")
        client.list_reports.side_effect = TransportFailure("down")
        task = ready_task(driver)

        driver.combine()

        assert task.state is CombinationState.COMBINED
        assert driver.reports == []


class TestClose:
    """Tests for close."""

    def test_close_waiting_task(self, driver, client) -> None:
        task = driver.start("r1", "e20", generation=1)

        assert driver.close() is task
        assert task.state is CombinationState.CLOSED
        assert driver.task is None
        client.list_reports.assert_not_called()

    def test_close_keeps_final_states(self, driver, client) -> None:
        client.combine_reports.return_value = ReportSummary("r3")
        task = ready_task(driver)
        driver.combine()

        driver.close()

        assert task.state is CombinationState.COMBINED

    def test_start_replaces_previous_task(self, driver) -> None:
        first = driver.start("r1", "e20", generation=1)
        second = driver.start("r5", "e21", generation=2)

        assert first.state is CombinationState.CLOSED
        assert driver.task is second

    def test_close_without_task(self, driver) -> None:
        assert driver.close() is None
