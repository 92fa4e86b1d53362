"""Server-sent events frame parser.

Turns the text lines of a ``text/event-stream`` response into events:

    event: log
    data: first line
    data: second line
    <blank line>

yields ServerSentEvent(event="log", data="first line\\nsecond line").
Frames without an ``event:`` field are reported as ``message`` events.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

DEFAULT_EVENT = "message"


@dataclass
class ServerSentEvent:
    """A single dispatched SSE event."""
    event: str = DEFAULT_EVENT
    data: str = ""
    id: Optional[str] = None


def iter_events(lines: Iterable[Union[str, bytes]]) -> Iterator[ServerSentEvent]:
    """Parse SSE lines into events.

    Args:
        lines: Lines without their terminators, e.g. from
            ``requests.Response.iter_lines()``. Bytes are decoded as UTF-8
            here so that only CR and LF split lines.

    Yields:
        One ServerSentEvent per blank-line-terminated frame that carried data.
        An unterminated frame at end of stream is dropped.
    """
    event_type = ""
    data_lines: list[str] = []
    last_id: Optional[str] = None

    for raw in lines:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        line = raw.rstrip("\r")

        if not line:
            if data_lines:
                yield ServerSentEvent(
                    event=event_type or DEFAULT_EVENT,
                    data="\n".join(data_lines),
                    id=last_id,
                )
            event_type = ""
            data_lines = []
            continue

        if line.startswith(":"):
            # Comment / keep-alive
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            event_type = value
        elif name == "data":
            data_lines.append(value)
        elif name == "id":
            last_id = value
