# propsearch/core/fetch/sse.py
"""
Server-sent events decoding over an async line iterator.

Only the framing rules the listing backend relies on are implemented:
`event:` and `data:` fields, multi-line data joined with "\n", comment lines
(leading ":") ignored, and a blank line dispatching the pending event. `id:`
and `retry:` are accepted and ignored; the client does not auto-reconnect.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass


@dataclass(frozen=True)
class SseEvent:
    event: str
    data: str


async def iter_sse_events(lines: AsyncIterable[str]) -> AsyncIterator[SseEvent]:
    """Yield events in delivery order. A trailing event without a blank line is still dispatched."""
    event_name = ""
    data: list[str] = []

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield SseEvent(event=event_name or "message", data="\n".join(data))
            event_name, data = "", []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            event_name = value
        elif field == "data":
            data.append(value)

    if data:
        yield SseEvent(event=event_name or "message", data="\n".join(data))
