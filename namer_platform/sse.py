"""Server-sent-events framing for the progress stream."""

from __future__ import annotations

from typing import Iterable, Iterator


def iter_sse_data(lines: Iterable[bytes | str]) -> Iterator[str]:
    """Yield the ``data`` payload of each event in an SSE line stream.

    Multi-line ``data:`` fields are joined with newlines, ``:`` comment lines
    and other field names are skipped, and an event is dispatched on the
    blank line that terminates it. A trailing event without its blank line
    is discarded, as a browser ``EventSource`` would.
    """
    buffer: list[str] = []
    for raw in lines:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")

        if not line:
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            buffer.append(value)
