"""CLI entry point for launch-monitor.

Usage:
    launch-monitor [--config FILE] [--url URL] <command> [options]

Every command prints one JSON document on stdout:
    {"success": bool, "command": str, "data": {...}, "message": str}
Progress and streamed logs go to stderr.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import click

from .config import MonitorConfig, check_config, load_config
from .discovery import SelectionStore, TestTree
from .errors import ConfigError, LauncherError
from .monitor import MAIN_SLOT, RERUN_SLOT, ExecutionCoordinator
from .reporting import JsonReporter
from .runner import RunExecutor
from .transport import LauncherHttpClient, RetryPolicy


@dataclass
class CliContext:
    config: MonitorConfig
    pretty: bool = False

    def client(self) -> LauncherHttpClient:
        return LauncherHttpClient(
            self.config.base_url,
            retry_policy=RetryPolicy(max_retries=self.config.retries),
            request_timeout=self.config.request_timeout,
            stream_connect_timeout=self.config.stream_connect_timeout,
        )


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML configuration file.",
)
@click.option("--url", help="Backend base URL (overrides config and LAUNCH_MONITOR_URL).")
@click.option("--pretty", is_flag=True, help="Pretty print JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], url: Optional[str], pretty: bool, verbose: bool):
    """Discover, launch and monitor test executions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        config = load_config(config_path, base_url=url)
    except ConfigError as e:
        output_error("config", str(e), pretty=pretty)
        ctx.exit(1)
    ctx.obj = CliContext(config=config, pretty=pretty)


@main.command()
@click.option("--package", "package_filter", help="Only discover tests in this package.")
@click.pass_obj
def discover(obj: CliContext, package_filter: Optional[str]):
    """List the tests available on the backend."""
    with obj.client() as client:
        tree = _call("discover", obj, client.discover_tests, package_filter)

    output({
        "success": True,
        "command": "discover",
        "data": {
            "total_tests": tree.total_tests,
            "discovery_timestamp": tree.discovery_timestamp,
            "classes": [
                {
                    "id": c.unique_id,
                    "name": c.fully_qualified_name or c.display_name,
                    "methods": [
                        {"id": m.unique_id, "name": m.display_name, "tags": m.tags}
                        for m in c.test_methods
                    ],
                }
                for c in tree.test_classes
            ],
        },
        "message": f"Discovered {tree.total_tests} tests in {len(tree.test_classes)} classes",
    }, pretty=obj.pretty)


@main.command()
@click.argument("test_ids", nargs=-1)
@click.option("--class", "class_ids", multiple=True, help="Select every method of a class.")
@click.option("--all", "select_all", is_flag=True, help="Select every discovered test.")
@click.option("--package", "package_filter", help="Package filter used for --class/--all discovery.")
@click.option("--poll-interval", type=float, help="Seconds between status polls.")
@click.option("--timeout", type=float, help="Give up monitoring after this many seconds.")
@click.option("--save-report", is_flag=True, help="Save a JSON summary to a file.")
@click.option("--report-dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--quiet", is_flag=True, help="Do not echo streamed log lines.")
@click.pass_obj
def run(obj: CliContext, test_ids, class_ids, select_all, package_filter,
        poll_interval, timeout, save_report, report_dir, quiet):
    """Launch tests and monitor them until they finish."""
    config = _with_overrides("run", obj, poll_interval, timeout, save_report, report_dir)

    with obj.client() as client:
        selection = SelectionStore(test_ids)
        if class_ids or select_all:
            tree = _call("run", obj, client.discover_tests, package_filter)
            _select_from_tree(obj, selection, tree, class_ids, select_all)

        if not selection:
            output_error("run", "No tests selected", pretty=obj.pretty)
            sys.exit(1)

        with ExecutionCoordinator.from_config(client, config) as coordinator:
            executor = RunExecutor(coordinator, config, show_logs=not quiet)
            try:
                result = executor.run(selection.test_ids)
            except KeyboardInterrupt:
                _interrupt(coordinator, obj, "run")

    _exit_with(result.to_flow_json(), obj)


@main.command()
@click.argument("report_id")
@click.option("--no-combine", is_flag=True, help="Do not combine the rerun report with the original.")
@click.option("--poll-interval", type=float, help="Seconds between status polls.")
@click.option("--timeout", type=float, help="Give up monitoring after this many seconds.")
@click.option("--save-report", is_flag=True, help="Save a JSON summary to a file.")
@click.option("--report-dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--quiet", is_flag=True, help="Do not echo streamed log lines.")
@click.pass_obj
def rerun(obj: CliContext, report_id, no_combine, poll_interval, timeout,
          save_report, report_dir, quiet):
    """Rerun the failed tests of REPORT_ID and combine the reports."""
    config = _with_overrides("rerun", obj, poll_interval, timeout, save_report, report_dir)

    with obj.client() as client:
        with ExecutionCoordinator.from_config(client, config) as coordinator:
            executor = RunExecutor(coordinator, config, show_logs=not quiet)
            try:
                result = executor.rerun(report_id, combine=not no_combine)
            except KeyboardInterrupt:
                _interrupt(coordinator, obj, "rerun")

    _exit_with(result.to_flow_json(), obj)


@main.command()
@click.argument("execution_id")
@click.pass_obj
def cancel(obj: CliContext, execution_id: str):
    """Ask the backend to cancel EXECUTION_ID."""
    with obj.client() as client:
        _call("cancel", obj, client.cancel, execution_id)

    output({
        "success": True,
        "command": "cancel",
        "data": {"execution_id": execution_id},
        "message": "Cancellation requested",
    }, pretty=obj.pretty)


@main.command()
@click.pass_obj
def reports(obj: CliContext):
    """List persisted reports, newest first."""
    with obj.client() as client:
        summaries = _call("reports", obj, client.list_reports)

    output({
        "success": True,
        "command": "reports",
        "data": {
            "reports": [
                {
                    "report_id": r.report_id,
                    "execution_id": r.execution_id,
                    "timestamp": r.timestamp,
                    "total": r.total_tests,
                    "passed": r.passed_tests,
                    "failed": r.failed_tests,
                    "skipped": r.skipped_tests,
                    "combined": r.is_combined,
                }
                for r in summaries
            ],
        },
        "message": f"{len(summaries)} reports",
    }, pretty=obj.pretty)


@main.command()
@click.argument("source_report_id")
@click.argument("rerun_report_id")
@click.pass_obj
def combine(obj: CliContext, source_report_id: str, rerun_report_id: str):
    """Combine SOURCE_REPORT_ID with RERUN_REPORT_ID into a new report."""
    with obj.client() as client:
        combined = _call("combine", obj, client.combine_reports, source_report_id, rerun_report_id)

    output({
        "success": True,
        "command": "combine",
        "data": {
            "report_id": combined.report_id,
            "combined_report_ids": combined.combined_report_ids,
        },
        "message": f"Combined report {combined.report_id}",
    }, pretty=obj.pretty)


@main.command()
@click.argument("log_id", required=False)
@click.pass_obj
def logs(obj: CliContext, log_id: Optional[str]):
    """List archived execution logs, or print LOG_ID."""
    with obj.client() as client:
        if log_id:
            content = _call("logs", obj, client.get_log, log_id)
            click.echo(content, nl=not content.endswith("\n"))
            return
        entries = _call("logs", obj, client.list_logs)

    output({
        "success": True,
        "command": "logs",
        "data": {
            "logs": [
                {
                    "log_id": entry.log_id,
                    "execution_id": entry.execution_id,
                    "timestamp": entry.timestamp,
                    "size": format_file_size(entry.file_size_bytes),
                }
                for entry in entries
            ],
        },
        "message": f"{len(entries)} logs",
    }, pretty=obj.pretty)


def _call(command: str, obj: CliContext, func, *args):
    """Run a client call, turning launcher errors into JSON error output."""
    try:
        return func(*args)
    except LauncherError as e:
        output_error(command, str(e), pretty=obj.pretty)
        sys.exit(1)


def _with_overrides(command: str, obj: CliContext, poll_interval, timeout,
                    save_report, report_dir) -> MonitorConfig:
    """Apply run options to the loaded config and validate the result."""
    config = obj.config
    if poll_interval is not None:
        config.poll_interval = poll_interval
    if timeout is not None:
        config.run_timeout = timeout
    if save_report:
        config.save_report = True
    if report_dir is not None:
        config.report_dir = report_dir
        config.save_report = True

    try:
        return check_config(config)
    except ConfigError as e:
        output_error(command, str(e), pretty=obj.pretty)
        sys.exit(1)


def _select_from_tree(obj, selection: SelectionStore, tree: TestTree, class_ids, select_all) -> None:
    if select_all:
        selection.select(m.unique_id for m in tree.iter_methods())
        return
    for class_id in class_ids:
        test_class = tree.find_class(class_id)
        if test_class is None:
            output_error("run", f"Test class not found: {class_id}", pretty=obj.pretty)
            sys.exit(1)
        if not selection.is_class_selected(test_class):
            selection.toggle_class(test_class)


def _interrupt(coordinator: ExecutionCoordinator, obj: CliContext, command: str) -> None:
    for slot in (MAIN_SLOT, RERUN_SLOT):
        session = coordinator.session(slot)
        if session is not None and not session.is_terminal:
            try:
                coordinator.cancel(slot)
            except LauncherError as e:
                click.echo(f"WARNING: {e}", err=True)
    output_error(command, "Interrupted by user", pretty=obj.pretty)
    sys.exit(130)


def _exit_with(flow_output: dict[str, Any], obj: CliContext) -> None:
    output(flow_output, pretty=obj.pretty)
    if not flow_output.get("success", False):
        sys.exit(1)


def format_file_size(size: int) -> str:
    """Human readable byte count (1536 -> '1.5 KB')."""
    if not size:
        return "0 B"
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{round(value, 2):g} {unit}"
        value /= 1024
    return f"{round(value, 2):g} GB"


def output(payload: dict[str, Any], pretty: bool = False) -> None:
    click.echo(JsonReporter().to_json_string(payload, pretty=pretty))


def output_error(command: str, message: str, pretty: bool = False, **extra) -> None:
    """Output error in JSON format."""
    output({
        "success": False,
        "command": command,
        "data": extra or None,
        "message": message,
    }, pretty=pretty)


if __name__ == "__main__":
    main()
