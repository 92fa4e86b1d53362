"""Shared fixtures for launch-monitor tests."""

from typing import Optional
from unittest.mock import MagicMock

import pytest

from launch_monitor.monitor.coordinator import ExecutionCoordinator
from launch_monitor.monitor.notifications import Notification
from launch_monitor.transport.http_client import LauncherHttpClient, LaunchResponse


class FakeChannel:
    """Stand-in for StatusPoller and PushListener that never touches the network."""

    def __init__(self, client, execution_id, generation, emit, interval: Optional[float] = None):
        self.client = client
        self.execution_id = execution_id
        self.generation = generation
        self.emit = emit
        self.interval = interval
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True


def _recording_factory(created: list[FakeChannel]):
    def factory(*args, **kwargs) -> FakeChannel:
        channel = FakeChannel(*args, **kwargs)
        created.append(channel)
        return channel
    return factory


@pytest.fixture
def mock_client() -> MagicMock:
    """Backend client mock launching executions e1, e2, ..."""
    client = MagicMock(spec=LauncherHttpClient)
    client.execute.side_effect = [LaunchResponse(execution_id=f"e{i}") for i in range(1, 10)]
    client.list_reports.return_value = []
    return client


@pytest.fixture
def pollers() -> list[FakeChannel]:
    return []


@pytest.fixture
def listeners() -> list[FakeChannel]:
    return []


@pytest.fixture
def coordinator(
    mock_client: MagicMock, pollers: list[FakeChannel], listeners: list[FakeChannel]
) -> ExecutionCoordinator:
    """Coordinator wired to fake channels and a zero rerun report delay."""
    coord = ExecutionCoordinator(
        mock_client,
        poll_interval=0.01,
        rerun_report_delay=0.0,
        poller_factory=_recording_factory(pollers),
        listener_factory=_recording_factory(listeners),
    )
    yield coord
    coord.shutdown()


@pytest.fixture
def applied(coordinator: ExecutionCoordinator) -> list[tuple[str, Notification]]:
    """Notifications the coordinator applied, as (slot, notification)."""
    seen: list[tuple[str, Notification]] = []
    coordinator.add_listener(lambda slot, session, n: seen.append((slot, n)))
    return seen
