"""Execution coordinator.

Owns the execution sessions of each monitoring slot and merges the two
channels that report on them:

- the push channel (PushListener) owns ``logs``
- the poll channel (StatusPoller) owns ``status``, ``test_results`` and
  ``report_id``

Channels run on their own threads and only post notifications. All
session mutation happens in handle(), on whichever single thread drains
the queue through process_pending() or wait().

State machine per session:

    PENDING --> RUNNING --> COMPLETED | FAILED | CANCELLED

Terminal states are absorbing. Only a status snapshot can make a session
terminal; a cancel request alone changes nothing locally.
"""

import itertools
import logging
import queue
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from ..config.schema import DEFAULT_POLL_INTERVAL, DEFAULT_RERUN_REPORT_DELAY
from ..errors import CancelFailure
from .combination import (
    CombinationState,
    ReportCombinationDriver,
    ReportCombinationTask,
)
from .launcher import SessionLauncher
from .notifications import (
    Connected,
    ConnectionClosed,
    LogAppended,
    Notification,
    PollFailed,
    RerunReportFound,
    RerunReportMissing,
    StatusObserved,
    StreamDegraded,
)
from .push_listener import PushListener
from .session import ExecutionSession, ExecutionStatus
from .status_poller import StatusPoller

if TYPE_CHECKING:
    from ..config.schema import MonitorConfig
    from ..transport.http_client import LauncherHttpClient

logger = logging.getLogger(__name__)

MAIN_SLOT = "main"
RERUN_SLOT = "rerun"

# Observer signature: (slot name, session, applied notification)
SessionListener = Callable[[str, Optional[ExecutionSession], Notification], None]


@dataclass
class MonitorSlot:
    """One independently monitored view: its session and channel handles."""
    name: str
    session: Optional[ExecutionSession] = None
    generation: int = 0
    poller: Optional[StatusPoller] = None
    listener: Optional[PushListener] = None


class ExecutionCoordinator:
    """Tracks execution sessions and decides their terminal transitions."""

    def __init__(
        self,
        client: "LauncherHttpClient",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        rerun_report_delay: float = DEFAULT_RERUN_REPORT_DELAY,
        poller_factory: Callable[..., StatusPoller] = StatusPoller,
        listener_factory: Callable[..., PushListener] = PushListener,
        slots: Iterable[str] = (MAIN_SLOT, RERUN_SLOT),
    ):
        """Initialize coordinator.

        Args:
            client: Backend client shared by launcher and channels.
            poll_interval: Seconds between status polls.
            rerun_report_delay: Seconds to wait before looking up a rerun report.
            poller_factory: Builds a StatusPoller (client, execution_id,
                generation, emit, interval=...).
            listener_factory: Builds a PushListener (client, execution_id,
                generation, emit).
            slots: Names of the monitoring slots.
        """
        self.client = client
        self.poll_interval = poll_interval
        self.launcher = SessionLauncher(client)
        self.combination = ReportCombinationDriver(
            client, emit=self.post, wait_delay=rerun_report_delay
        )
        self._poller_factory = poller_factory
        self._listener_factory = listener_factory
        self._slots = {name: MonitorSlot(name) for name in slots}
        self._generations = itertools.count(1)
        self._inbox: "queue.Queue[Notification]" = queue.Queue()
        self._listeners: list[SessionListener] = []

    @classmethod
    def from_config(
        cls, client: "LauncherHttpClient", config: "MonitorConfig", **kwargs
    ) -> "ExecutionCoordinator":
        return cls(
            client,
            poll_interval=config.poll_interval,
            rerun_report_delay=config.rerun_report_delay,
            **kwargs,
        )

    # -- slots and observers -------------------------------------------

    def slot(self, name: str) -> MonitorSlot:
        try:
            return self._slots[name]
        except KeyError:
            raise ValueError(f"Unknown monitoring slot: {name}") from None

    def session(self, slot: str = MAIN_SLOT) -> Optional[ExecutionSession]:
        return self.slot(slot).session

    @property
    def combination_task(self) -> Optional[ReportCombinationTask]:
        return self.combination.task

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- user actions --------------------------------------------------

    def launch(self, test_ids: Iterable[str], slot: str = MAIN_SLOT) -> ExecutionSession:
        """Launch tests and start monitoring them on a slot.

        Raises:
            LaunchFailure: No session is created and the slot keeps
                monitoring whatever it monitored before.
        """
        session = self.launcher.launch(test_ids)
        self.attach(slot, session)
        return session

    def rerun(self, report_id: str, slot: str = RERUN_SLOT) -> ExecutionSession:
        """Rerun the failed tests of a report and monitor the rerun.

        Raises:
            NoFailedTestsError: If the report has no failed tests.
            LaunchFailure: For any other launch refusal.
        """
        session = self.launcher.launch_rerun(report_id)
        self.attach(slot, session)
        return session

    def attach(self, slot_name: str, session: ExecutionSession) -> None:
        """Make ``session`` the slot's session and open its channels.

        The slot's previous channels are closed first, so a slot never has
        more than one push connection and one poller.
        """
        slot = self.slot(slot_name)
        self._teardown(slot)

        slot.session = session
        slot.generation = next(self._generations)
        session.active = True
        # Sequence numbers restart with every poller
        session.last_sequence = 0

        slot.listener = self._listener_factory(
            self.client, session.execution_id, slot.generation, self.post
        )
        slot.poller = self._poller_factory(
            self.client,
            session.execution_id,
            slot.generation,
            self.post,
            interval=self.poll_interval,
        )
        logger.info(
            "Monitoring execution %s on slot '%s'", session.execution_id, slot.name
        )
        slot.listener.start()
        slot.poller.start()

    def cancel(self, slot: str = MAIN_SLOT) -> None:
        """Ask the backend to cancel the slot's execution.

        Local status only changes once a status snapshot reports CANCELLED.

        Raises:
            CancelFailure: If there is nothing to cancel or the backend
                rejects the request.
        """
        session = self.slot(slot).session
        if session is None or session.is_terminal:
            raise CancelFailure(f"No running execution on slot '{slot}'")
        self.client.cancel(session.execution_id)
        logger.info("Cancel requested for execution %s", session.execution_id)

    def dismiss(self, slot: str) -> Optional[ExecutionSession]:
        """Stop monitoring a slot and forget its session."""
        target = self.slot(slot)
        self._teardown(target)
        session, target.session = target.session, None
        return session

    def abandon(self, slot: str, reason: str) -> Optional[ExecutionSession]:
        """Stop monitoring a slot but keep its session, marked inconclusive."""
        target = self.slot(slot)
        session = target.session
        self._teardown(target)
        if session is not None and not session.is_terminal:
            session.inconclusive = True
            session.errors.append(reason)
            logger.warning("Stopped monitoring %s: %s", session.execution_id, reason)
        return session

    def close_rerun_panel(self) -> Optional[ReportCombinationTask]:
        """Close the rerun view: stop its channels and drop the combination task.

        Returns:
            The combination task that was open, if any.
        """
        task = self.combination.task
        if RERUN_SLOT in self._slots:
            self.dismiss(RERUN_SLOT)
        self.combination.close()
        return task

    def shutdown(self) -> None:
        for name in self._slots:
            self.dismiss(name)
        self.combination.close()

    # -- dispatch ------------------------------------------------------

    def post(self, notification: Notification) -> None:
        """Queue a notification. Safe to call from any thread."""
        self._inbox.put(notification)

    def process_pending(self, timeout: Optional[float] = None) -> int:
        """Handle queued notifications on the calling thread.

        Args:
            timeout: Seconds to block for the first notification. None or 0
                only drains what is already queued.

        Returns:
            Number of notifications handled.
        """
        handled = 0
        try:
            if timeout:
                notification = self._inbox.get(timeout=timeout)
            else:
                notification = self._inbox.get_nowait()
            while True:
                self.handle(notification)
                handled += 1
                notification = self._inbox.get_nowait()
        except queue.Empty:
            pass
        return handled

    def wait(
        self,
        slot: str = MAIN_SLOT,
        timeout: Optional[float] = None,
        tick: float = 0.1,
    ) -> Optional[ExecutionSession]:
        """Dispatch notifications until the slot's session stops being
        monitored or the timeout expires."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            session = self.slot(slot).session
            if session is None or not session.active:
                return session
            wait_for = tick
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return session
                wait_for = min(tick, remaining)
            self.process_pending(timeout=wait_for)

    def wait_for_rerun_report(
        self,
        timeout: Optional[float] = None,
        tick: float = 0.1,
    ) -> Optional[ReportCombinationTask]:
        """Dispatch notifications until the rerun report lookup settles."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            task = self.combination.task
            if task is None or task.state is not CombinationState.WAITING:
                return task
            wait_for = tick
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return task
                wait_for = min(tick, remaining)
            self.process_pending(timeout=wait_for)

    def handle(self, notification: Notification) -> bool:
        """Apply one notification.

        Returns:
            True if it changed state, False if it was discarded.
        """
        if isinstance(notification, (RerunReportFound, RerunReportMissing)):
            applied = self.combination.apply(notification)
            if applied:
                slot = self._slot_for(notification)
                self._notify(
                    slot.name if slot else RERUN_SLOT,
                    slot.session if slot else None,
                    notification,
                )
            return applied

        slot = self._slot_for(notification)
        if slot is None:
            logger.debug("Discarding %s for a superseded session", notification)
            return False

        session = slot.session
        if session.is_terminal:
            logger.debug(
                "Ignoring %s for %s, already %s",
                type(notification).__name__,
                session.execution_id,
                session.status.value,
            )
            return False

        if isinstance(notification, LogAppended):
            session.logs.append(notification.text)
        elif isinstance(notification, StatusObserved):
            if not self._apply_status(slot, notification):
                return False
        elif isinstance(notification, Connected):
            if session.status is ExecutionStatus.PENDING:
                session.status = ExecutionStatus.RUNNING
        elif isinstance(notification, ConnectionClosed):
            slot.listener = None
        elif isinstance(notification, StreamDegraded):
            session.stream_degraded = True
            session.errors.append(f"Log stream degraded: {notification.reason}")
        elif isinstance(notification, PollFailed):
            self._poll_failed(slot, notification)
        else:
            logger.warning("Unhandled notification %r", notification)
            return False

        self._notify(slot.name, session, notification)
        return True

    # -- internals -----------------------------------------------------

    def _slot_for(self, notification: Notification) -> Optional[MonitorSlot]:
        for slot in self._slots.values():
            if (
                slot.session is not None
                and slot.generation == notification.generation
                and slot.session.execution_id == notification.execution_id
            ):
                return slot
        return None

    def _apply_status(self, slot: MonitorSlot, observed: StatusObserved) -> bool:
        session = slot.session
        if observed.sequence <= session.last_sequence:
            logger.debug(
                "Dropping stale status #%d for %s", observed.sequence, session.execution_id
            )
            return False
        session.last_sequence = observed.sequence

        for outcome in observed.test_results:
            session.test_results[outcome.test_id] = outcome
        if observed.report_id:
            session.report_id = observed.report_id

        # PENDING never moves a started session backwards
        if observed.status is not ExecutionStatus.PENDING:
            session.status = observed.status

        if session.is_terminal:
            self._finish(slot)
        return True

    def _finish(self, slot: MonitorSlot) -> None:
        session = slot.session
        self._stop_channels(slot)
        session.active = False
        session.finished_at = time.time()
        logger.info(
            "Execution %s finished: %s (report %s)",
            session.execution_id,
            session.status.value,
            session.report_id or "none",
        )

        if (
            session.is_rerun
            and session.status is ExecutionStatus.COMPLETED
            and session.source_report_id
        ):
            self.combination.start(
                session.source_report_id, session.execution_id, slot.generation
            )

    def _poll_failed(self, slot: MonitorSlot, failed: PollFailed) -> None:
        session = slot.session
        if slot.poller is not None:
            slot.poller.stop()
            slot.poller = None
        session.active = False
        session.inconclusive = True
        session.errors.append(f"Status polling stopped: {failed.reason}")
        logger.warning(
            "Monitoring of %s ended in status %s: %s",
            session.execution_id,
            session.status.value,
            failed.reason,
        )

    def _stop_channels(self, slot: MonitorSlot) -> None:
        if slot.poller is not None:
            slot.poller.stop()
            slot.poller = None
        if slot.listener is not None:
            slot.listener.stop()
            slot.listener = None

    def _teardown(self, slot: MonitorSlot) -> None:
        self._stop_channels(slot)
        task = self.combination.task
        if task is not None and task.generation == slot.generation:
            self.combination.close()
        if slot.session is not None:
            slot.session.active = False

    def _notify(
        self, slot: str, session: Optional[ExecutionSession], notification: Notification
    ) -> None:
        for listener in list(self._listeners):
            listener(slot, session, notification)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.shutdown()
