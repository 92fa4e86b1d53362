"""Execution session model.

An ExecutionSession tracks one test run from launch to its terminal
status. Only the ExecutionCoordinator mutates sessions; everything else
reads them.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ExecutionStatus(str, Enum):
    """Lifecycle status of an execution."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def parse(cls, value: Any) -> "ExecutionStatus":
        """Parse a backend status string (case-insensitive).

        Raises:
            ValueError: For unknown statuses.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown execution status: {value!r}") from None


TERMINAL_STATUSES = frozenset({
    ExecutionStatus.COMPLETED,
    ExecutionStatus.FAILED,
    ExecutionStatus.CANCELLED,
})


class SessionKind(str, Enum):
    NORMAL = "NORMAL"
    RERUN = "RERUN"


@dataclass(frozen=True)
class TestOutcome:
    """Latest known result of a single test."""
    __test__ = False

    test_id: str
    status: str
    message: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestOutcome":
        test_id = data.get("testId") or data.get("uniqueId") or data.get("displayName")
        if not test_id:
            raise ValueError(f"Test result without identifier: {data!r}")
        return cls(
            test_id=str(test_id),
            status=str(data.get("status", "UNKNOWN")).upper(),
            message=data.get("message"),
            display_name=data.get("displayName"),
        )


@dataclass
class ExecutionSession:
    """One test run from launch to terminal outcome."""
    execution_id: str
    kind: SessionKind = SessionKind.NORMAL
    source_report_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    initial_status: Optional[str] = None
    selected_test_ids: list[str] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)
    test_results: dict[str, TestOutcome] = field(default_factory=dict)
    report_id: Optional[str] = None
    launched_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    # Poll monitoring is still running
    active: bool = False
    inconclusive: bool = False
    stream_degraded: bool = False
    errors: list[str] = field(default_factory=list)
    last_sequence: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_rerun(self) -> bool:
        return self.kind is SessionKind.RERUN

    @property
    def failed_test_ids(self) -> list[str]:
        return [
            test_id for test_id, outcome in self.test_results.items()
            if outcome.status == "FAILED"
        ]

    @property
    def duration_ms(self) -> int:
        end = self.finished_at if self.finished_at is not None else time.time()
        return int((end - self.launched_at) * 1000)

    def count_results(self, status: str) -> int:
        """Number of tests whose latest result has the given status."""
        status = status.upper()
        return sum(1 for r in self.test_results.values() if r.status == status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "executionId": self.execution_id,
            "kind": self.kind.value,
            "sourceReportId": self.source_report_id,
            "status": self.status.value,
            "reportId": self.report_id,
            "inconclusive": self.inconclusive,
            "streamDegraded": self.stream_degraded,
            "testResults": [
                {
                    "testId": r.test_id,
                    "displayName": r.display_name,
                    "status": r.status,
                    "message": r.message,
                }
                for r in self.test_results.values()
            ],
            "logs": list(self.logs),
            "errors": list(self.errors),
        }
