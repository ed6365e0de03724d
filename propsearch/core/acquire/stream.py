# propsearch/core/acquire/stream.py
"""
Turns a server-push listing stream into store appends.

One stream per ingestor. Events are applied strictly in delivery order:

  property  → one Listing appended (malformed payloads are logged and skipped)
  complete  → StreamSummary recorded, stream terminal (success)
  error     → RemoteError, stream terminal (failure)

If the transport closes before `complete`, the stream fails with
StreamClosedUnexpectedly, unless the caller closed it first. Items already
appended are never removed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from contextlib import aclosing
from dataclasses import dataclass, field

from pydantic import ValidationError

from propsearch.core.fetch.datasource import RemoteDataSource
from propsearch.core.fetch.errors import ParseError, RemoteError, SearchClientError, StreamClosedUnexpectedly
from propsearch.core.fetch.source import PropertySource, detect_source
from propsearch.schemas.models import Listing, StreamSummary

from .lifecycle import Aborted, CancelToken, Completed, Failed, Outcome, RequestLifecycleManager
from .store import AccumulationStore

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class StreamHandle:
    """Caller-side view of one open stream."""

    target_url: str
    orig_query: str | None = None
    source: PropertySource = "unknown"
    received: int = 0
    dropped: int = 0
    is_complete: bool = False
    summary: StreamSummary | None = None
    error: SearchClientError | None = None
    closed_by_caller: bool = False
    task: asyncio.Task[Outcome] | None = field(default=None, repr=False)
    _ingestor: StreamIngestor | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.is_complete or self.error is not None or self.closed_by_caller

    def close(self) -> None:
        if self._ingestor is not None:
            self._ingestor.close(self)

    async def wait(self) -> Outcome | None:
        return await self.task if self.task is not None else None


class StreamIngestor:
    def __init__(
        self,
        source: RemoteDataSource,
        store: AccumulationStore,
        lifecycle: RequestLifecycleManager,
        *,
        on_update: Callable[[StreamHandle], None] | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._lifecycle = lifecycle
        self._on_update = on_update
        self._current: StreamHandle | None = None

    @property
    def current(self) -> StreamHandle | None:
        return self._current

    def open(self, target_url: str, *, orig_query: str | None = None) -> StreamHandle:
        """Start consuming `target_url` in a background task. Must be called inside a running loop."""
        loop = asyncio.get_running_loop()
        previous = self._current
        if previous is not None and not previous.done:
            previous.closed_by_caller = True
            self._lifecycle.cancel("stream replaced")

        handle = StreamHandle(
            target_url=target_url,
            orig_query=orig_query,
            source=detect_source(target_url),
            _ingestor=self,
        )
        self._current = handle
        handle.task = loop.create_task(self._run(handle), name=f"stream:{handle.source}")
        logger.info("stream opened: %s (source=%s)", target_url, handle.source)
        return handle

    def close(self, handle: StreamHandle | None = None) -> None:
        h = handle or self._current
        if h is None or h.done:
            return
        h.closed_by_caller = True
        if h is self._current:
            self._lifecycle.cancel("stream closed by caller")
        logger.debug("stream closed by caller: %s", h.target_url)

    # ---------- Internals ----------

    async def _run(self, handle: StreamHandle) -> Outcome:
        if handle.closed_by_caller:
            return Aborted("closed")
        outcome = await self._lifecycle.issue(lambda token: self._consume(token, handle), label="stream")

        if isinstance(outcome, Completed):
            handle.summary = outcome.payload
            handle.is_complete = True
            logger.info("stream complete: %d received, summary count=%s", handle.received, handle.summary.count)
        elif isinstance(outcome, Failed):
            if handle.closed_by_caller:
                outcome = Aborted("closed")
            else:
                handle.error = outcome.error
                logger.error("stream failed after %d items: %s", handle.received, outcome.error)
        else:
            handle.closed_by_caller = True

        self._notify(handle)
        return outcome

    async def _consume(self, token: CancelToken, handle: StreamHandle) -> StreamSummary:
        events = self._source.open_stream(handle.target_url, orig_query=handle.orig_query)
        async with aclosing(events) as stream:
            async for event in stream:
                token.raise_if_cancelled()
                if event.event == "property":
                    self._on_property(handle, event.data)
                elif event.event == "complete":
                    return self._parse_complete(event.data)
                elif event.event == "error":
                    raise RemoteError(self._error_message(event.data))
                else:
                    logger.debug("ignoring stream event %r", event.event)
        token.raise_if_cancelled()
        raise StreamClosedUnexpectedly()

    def _on_property(self, handle: StreamHandle, data: str) -> None:
        try:
            item = Listing.model_validate_json(data)
        except ValidationError as e:
            handle.dropped += 1
            logger.warning("dropping malformed stream item (%d so far): %s", handle.dropped, e.errors()[0].get("msg", e))
            return
        handle.received += self._store.append([item])
        self._notify(handle)

    @staticmethod
    def _parse_complete(data: str) -> StreamSummary:
        try:
            return StreamSummary.model_validate_json(data)
        except ValidationError as e:
            raise ParseError(f"Failed to parse completion data: {e.errors()[0].get('msg', e)}") from e

    @staticmethod
    def _error_message(data: str) -> str:
        try:
            body = json.loads(data)
        except ValueError:
            return data.strip() or "Stream error occurred"
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or "Stream error occurred")
        if isinstance(body, str) and body:
            return body
        return "Stream error occurred"

    def _notify(self, handle: StreamHandle) -> None:
        if self._on_update is not None and handle is self._current:
            self._on_update(handle)
