"""Push listener for server-sent execution logs.

Attaches to the backend's event stream for one execution and turns its
frames into coordinator notifications. The backend sends two named events:

    event: connected      data: <execution id>
    event: log            data: <one or more log lines>

Untyped frames are treated like ``log`` events. The listener never
reconnects; when the stream breaks the status poller stays the completion
signal.
"""

import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional

from ..transport.sse import ServerSentEvent, iter_events
from .notifications import (
    Connected,
    ConnectionClosed,
    LogAppended,
    Notification,
    StreamDegraded,
)

if TYPE_CHECKING:
    import requests

    from ..transport.http_client import LauncherHttpClient

logger = logging.getLogger(__name__)

LOG_EVENTS = frozenset({"log", "message"})


class PushListener:
    """Listens to one execution's log stream on a background thread."""

    def __init__(
        self,
        client: "LauncherHttpClient",
        execution_id: str,
        generation: int,
        emit: Callable[[Notification], None],
    ):
        """Initialize push listener.

        Args:
            client: Backend client used to open the stream.
            execution_id: Execution whose logs are streamed.
            generation: Slot generation stamped on every notification.
            emit: Callback receiving notifications (thread-safe).
        """
        self.client = client
        self.execution_id = execution_id
        self.generation = generation
        self._emit = emit
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._response: Optional["requests.Response"] = None
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

    def start(self) -> None:
        """Open the stream on a daemon thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self.listen,
            name=f"push-listener-{self.execution_id}",
            daemon=True,
        )
        self._thread.start()

    def listen(self) -> None:
        """Read the stream until it ends, fails or the listener is stopped.

        Blocking; start() runs it on a background thread.
        """
        try:
            response = self.client.open_log_stream(self.execution_id)
        except Exception as e:
            if not self._stopped.is_set():
                self._degraded(f"Could not open log stream: {e}")
            return

        with self._lock:
            if self._stopped.is_set():
                response.close()
                return
            self._response = response

        try:
            for event in iter_events(response.iter_lines()):
                if self._stopped.is_set():
                    return
                self._dispatch(event)
        except Exception as e:
            # stop() closes the response under the reader, which surfaces here
            if self._stopped.is_set():
                logger.debug("Log stream for %s closed locally: %s", self.execution_id, e)
                return
            self._degraded(f"Log stream interrupted: {e}")
            return
        finally:
            self._close_response()

        if not self._stopped.is_set():
            logger.info("Log stream for %s closed by server", self.execution_id)
            self._stopped.set()
            self._emit(ConnectionClosed(self.execution_id, self.generation, by_server=True))

    def stop(self) -> None:
        """Close the stream. Safe to call repeatedly."""
        self._stopped.set()
        self._close_response()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _dispatch(self, event: ServerSentEvent) -> None:
        if event.event == "connected":
            logger.debug("Log stream connected: %s", event.data)
            self._emit(Connected(self.execution_id, self.generation))
        elif event.event in LOG_EVENTS:
            for line in event.data.split("\n"):
                if line.strip():
                    self._emit(LogAppended(self.execution_id, self.generation, text=line))
        else:
            logger.debug("Ignoring '%s' event on %s", event.event, self.execution_id)

    def _degraded(self, reason: str) -> None:
        logger.warning("Log stream for %s degraded: %s", self.execution_id, reason)
        self._stopped.set()
        self._emit(ConnectionClosed(self.execution_id, self.generation, by_server=False))
        self._emit(StreamDegraded(self.execution_id, self.generation, reason=reason))

    def _close_response(self) -> None:
        with self._lock:
            response, self._response = self._response, None
        if response is not None:
            response.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.stop()
