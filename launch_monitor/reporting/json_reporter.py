"""JSON report generator for monitored executions.

Generates structured JSON summaries from finished execution sessions.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..monitor.session import ExecutionSession, ExecutionStatus
from ..monitor.combination import ReportCombinationTask


class JsonReporter:
    """Generates JSON summaries of execution sessions."""

    def generate(
        self,
        session: Optional[ExecutionSession],
        combination: Optional[ReportCombinationTask] = None,
        error: Optional[str] = None,
        include_logs: bool = True,
    ) -> dict[str, Any]:
        """Generate a JSON summary of a session.

        Args:
            session: Monitored session (None if the launch failed).
            combination: Rerun report combination task, if any.
            error: Overall error message.
            include_logs: Include the streamed log lines.

        Returns:
            Report dictionary ready for JSON serialization.
        """
        report: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "execution_id": None,
            "kind": None,
            "status": "failed" if error else "unknown",
            "summary": {
                "total": 0,
                "passed": 0,
                "failed": 0,
                "skipped": 0,
                "duration_ms": 0,
            },
            "report_id": None,
            "tests": [],
            "logs": [],
            "combination": combination.to_dict() if combination else None,
            "errors": [error] if error else [],
        }

        if session is None:
            return report

        report.update({
            "execution_id": session.execution_id,
            "kind": session.kind.value,
            "source_report_id": session.source_report_id,
            "status": self._overall_status(session, error),
            "execution_status": session.status.value,
            "inconclusive": session.inconclusive,
            "report_id": session.report_id,
            "tests": [
                {
                    "id": r.test_id,
                    "name": r.display_name or r.test_id,
                    "status": r.status,
                    "message": r.message,
                }
                for r in session.test_results.values()
            ],
            "logs": list(session.logs) if include_logs else [],
            "errors": list(session.errors) + ([error] if error else []),
        })
        report["summary"] = {
            "total": len(session.test_results),
            "passed": session.count_results("PASSED") + session.count_results("SUCCESSFUL"),
            "failed": session.count_results("FAILED"),
            "skipped": session.count_results("SKIPPED") + session.count_results("ABORTED"),
            "duration_ms": session.duration_ms,
        }
        return report

    def _overall_status(self, session: ExecutionSession, error: Optional[str]) -> str:
        if error or session.inconclusive:
            return "failed" if error else "inconclusive"
        if session.status is ExecutionStatus.COMPLETED:
            return "passed" if session.count_results("FAILED") == 0 else "failed"
        if session.status is ExecutionStatus.CANCELLED:
            return "cancelled"
        if session.status is ExecutionStatus.FAILED:
            return "failed"
        return "running"

    def save(self, report: dict[str, Any], path: Path) -> Path:
        """Save report to a JSON file.

        Args:
            report: Report dictionary.
            path: Output file path.

        Returns:
            Path to the saved file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)

        return path

    def to_json_string(self, report: dict[str, Any], pretty: bool = True) -> str:
        """Serialize a report or CLI payload, indented when ``pretty``."""
        if pretty:
            return json.dumps(report, indent=2, ensure_ascii=False)
        return json.dumps(report, ensure_ascii=False)

    def generate_flow_output(
        self,
        report: dict[str, Any],
        command: str = "run",
        report_path: Optional[str] = None,
    ) -> dict[str, Any]:
        """Generate CLI JSON output.

        Follows the JSON output standard:
        {
            "success": bool,
            "command": "run",
            "data": { ... },
            "message": str
        }

        Args:
            report: Session report dictionary.
            command: CLI command that produced the report.
            report_path: Path where report was saved.

        Returns:
            CLI output dictionary.
        """
        summary = report["summary"]
        status = report["status"]
        combination = report.get("combination")
        success = status == "passed" and not report["errors"]

        data: dict[str, Any] = {
            "execution_id": report["execution_id"],
            "status": report.get("execution_status"),
            "report_id": report["report_id"],
            "total_tests": summary["total"],
            "passed": summary["passed"],
            "failed": summary["failed"],
            "skipped": summary["skipped"],
            "duration_ms": summary["duration_ms"],
        }
        if combination:
            data["combination"] = combination
        if report_path:
            data["report_path"] = report_path

        if report["errors"]:
            message = f"Execution failed: {report['errors'][-1]}"
        elif status == "inconclusive":
            message = "Monitoring ended before the execution finished"
        elif status == "cancelled":
            message = "Execution cancelled"
        elif status == "failed":
            message = f"{summary['failed']} of {summary['total']} tests failed"
        elif status == "running":
            message = "Execution still running"
        else:
            message = "All tests passed"

        if combination and combination.get("combinedReportId"):
            message += f" (combined report {combination['combinedReportId']})"

        return {
            "success": success,
            "command": command,
            "data": data,
            "message": message,
        }
