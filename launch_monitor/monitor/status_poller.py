"""Status poller.

Requests the authoritative status snapshot of one execution on a fixed
interval until the execution is terminal, a request fails, or the poller
is stopped.
"""

import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional

from ..config.schema import DEFAULT_POLL_INTERVAL
from ..errors import TransportFailure
from .notifications import Notification, PollFailed, StatusObserved

if TYPE_CHECKING:
    from ..transport.http_client import LauncherHttpClient

logger = logging.getLogger(__name__)


class StatusPoller:
    """Polls execution status on a background thread.

    A failed request is not retried: the poller emits PollFailed and stops.
    Once stopped, no new request is issued and the answer to a request that
    was already in flight is dropped.
    """

    def __init__(
        self,
        client: "LauncherHttpClient",
        execution_id: str,
        generation: int,
        emit: Callable[[Notification], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.client = client
        self.execution_id = execution_id
        self.generation = generation
        self.interval = interval
        self._emit = emit
        self._sequence = 0
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stopped.is_set()
        )

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    @property
    def sequence(self) -> int:
        """Sequence number of the last emitted snapshot."""
        return self._sequence

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self.run,
            name=f"status-poller-{self.execution_id}",
            daemon=True,
        )
        self._thread.start()

    def run(self) -> None:
        """Poll every interval until done. The first request is sent one
        interval after start."""
        try:
            while not self._stopped.wait(self.interval):
                if not self.poll_once():
                    break
        except Exception as e:
            logger.exception("Status poller for %s crashed", self.execution_id)
            if not self._stopped.is_set():
                self._stopped.set()
                self._emit(PollFailed(self.execution_id, self.generation, reason=str(e)))

    def poll_once(self) -> bool:
        """Request one status snapshot and emit it.

        Returns:
            True if polling should continue.
        """
        if self._stopped.is_set():
            return False

        try:
            snapshot = self.client.get_status(self.execution_id)
        except TransportFailure as e:
            if self._stopped.is_set():
                return False
            logger.warning("Status poll for %s failed: %s", self.execution_id, e)
            self._stopped.set()
            self._emit(PollFailed(self.execution_id, self.generation, reason=str(e)))
            return False

        if self._stopped.is_set():
            logger.debug("Dropping status for %s received after stop", self.execution_id)
            return False

        self._sequence += 1
        self._emit(StatusObserved(
            self.execution_id,
            self.generation,
            status=snapshot.status,
            test_results=tuple(snapshot.test_results),
            report_id=snapshot.report_id,
            sequence=self._sequence,
        ))

        if snapshot.status.is_terminal:
            self._stopped.set()
            return False
        return True

    def stop(self) -> None:
        """Stop polling. Safe to call repeatedly."""
        self._stopped.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
