# propsearch/orchestrators/search_controller.py
"""
PropertySearchController: the one object a UI talks to.

Composes the acquisition pieces for a single search surface:

    RemoteDataSource ─► RequestLifecycleManager ─► AccumulationStore
                                                    ├─► WindowedPaginator (batch mode)
                                                    ├─► StreamIngestor    (stream mode)
                                                    └─► FilterGroupEngine (views)

Sessions
--------
search(query)              batch mode: offset pagination with background prefetch
open_stream(url)           stream mode: server-sent listings appended as they arrive
scrape(url)                one-shot: the whole result in a single response

Starting a session discards the previous one: its in-flight request is
cancelled, the store is cleared, and a generation counter makes sure nothing
the old session still delivers is applied.

State is pushed to subscribers as ControllerSnapshot objects after every
change; derived views (pages, grouped view, bounds) are pulled on demand.
All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

from propsearch.core.acquire import (
    Aborted,
    AccumulationStore,
    Completed,
    Failed,
    Outcome,
    RequestLifecycleManager,
    StreamHandle,
    StreamIngestor,
    WindowedPaginator,
)
from propsearch.core.acquire.lifecycle import RequestKind
from propsearch.core.fetch import SESSION_ERRORS, HttpDataSource, RemoteDataSource, SearchClientError
from propsearch.core.filters import FilterGroupEngine
from propsearch.inputs.settings import ClientSettings
from propsearch.schemas.models import (
    Batch,
    Bounds,
    ControllerSnapshot,
    ControllerStatus,
    FilterState,
    GroupedView,
    Listing,
    ScrapeResult,
    SearchSession,
)

logger = logging.getLogger(__name__)

Listener = Callable[[ControllerSnapshot], None]


class PropertySearchController:
    def __init__(
        self,
        source: RemoteDataSource | None = None,
        settings: ClientSettings | None = None,
        *,
        engine: FilterGroupEngine | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._source: RemoteDataSource = source if source is not None else HttpDataSource(self._settings)
        self._owns_source = source is None
        self._engine = engine or FilterGroupEngine()

        self._store = AccumulationStore()
        self._lifecycle = RequestLifecycleManager(on_change=self._notify)
        self._paginator = WindowedPaginator(
            self._store,
            page_size=self._settings.page_size,
            batch_size=self._settings.batch_size,
            trigger_page=self._settings.trigger_page,
            loader=self._schedule_prefetch,
            can_issue=self._can_issue,
        )
        self._streams = StreamIngestor(self._source, self._store, self._lifecycle, on_update=self._on_stream_update)

        self._session: SearchSession | None = None
        self._generation = 0
        self._settled = False
        self._error: SearchClientError | None = None
        self._stream: StreamHandle | None = None
        self._meta: dict[str, Any] = {}

        self._filters = self._engine.default_filters(self._settings.relevance_threshold)
        self._filters_version = -1
        self._bounds_cache: tuple[int, Bounds] | None = None

        self._pending_offsets: set[int] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[Listener] = []
        self._disposed = False

    # =========================
    # Sessions
    # =========================

    def search(
        self,
        query: str,
        *,
        property_type: str | None = None,
        message_type: str | None = None,
    ) -> asyncio.Task[Outcome]:
        """Start a batch-mode session and fetch its first batch (offset 0)."""
        if not query or not query.strip():
            raise ValueError("search query must not be empty")
        session = SearchSession(
            mode="batch", query=query.strip(), property_type=property_type, message_type=message_type
        )
        generation = self._begin(session)
        return self._load_offset(0, generation, kind="foreground")

    def open_stream(self, target_url: str, *, orig_query: str | None = None) -> asyncio.Task[Outcome]:
        """Start a stream-mode session; the returned task resolves when the stream ends."""
        session = SearchSession(mode="stream", target_url=target_url, orig_query=orig_query)
        self._begin(session)
        handle = self._streams.open(target_url, orig_query=orig_query)
        self._stream = handle
        self._meta["source"] = handle.source
        task = handle.task
        if task is None:
            raise RuntimeError("stream task was not started")
        self._track(task)
        return task

    def scrape(self, target_url: str, *, orig_query: str | None = None) -> asyncio.Task[Outcome]:
        """Start a one-shot session: every property of `target_url` in a single response."""
        session = SearchSession(mode="scrape", target_url=target_url, orig_query=orig_query)
        generation = self._begin(session)
        return self._spawn(self._load_scrape(session, generation), name="scrape")

    def refresh(self) -> asyncio.Task[Outcome] | None:
        """Re-run the current session from scratch (the retry path after a session error)."""
        s = self._session
        if s is None:
            return None
        logger.info("refreshing %s", s.describe())
        if s.mode == "batch":
            return self.search(s.query, property_type=s.property_type, message_type=s.message_type)
        if s.mode == "stream":
            return self.open_stream(s.target_url or "", orig_query=s.orig_query)
        return self.scrape(s.target_url or "", orig_query=s.orig_query)

    async def reset_cache(self) -> asyncio.Task[Outcome] | None:
        """Drop the backend's cached scrape for the current URL, then refresh."""
        s = self._session
        if s is None or not s.target_url:
            raise ValueError("cache reset needs an active stream or scrape session")
        generation = self._generation
        try:
            await self._source.reset_cache(s.target_url)
        except SESSION_ERRORS as e:
            if generation == self._generation:
                logger.error("cache reset failed for %s: %s", s.target_url, e)
                self._error = e
                self._notify()
            return None
        if generation != self._generation:
            return None
        return self.refresh()

    def reset(self) -> None:
        """Back to idle: no session, no items, default filters."""
        self._ensure_open()
        self._teardown_current("reset")
        self._session = None
        self._store.reset()
        self._paginator.reset()
        self._filters = self._engine.default_filters(self._settings.relevance_threshold)
        self._notify()

    # =========================
    # Navigation
    # =========================

    def current_page(self) -> list[Listing]:
        return self._paginator.current_page_items()

    def next(self) -> list[Listing]:
        items = self._paginator.next()
        self._notify()
        return items

    def previous(self) -> list[Listing]:
        items = self._paginator.previous()
        self._notify()
        return items

    def go_to_page(self, page: int) -> list[Listing]:
        items = self._paginator.go_to(page)
        self._notify()
        return items

    # =========================
    # Filters & views
    # =========================

    @property
    def bounds(self) -> Bounds:
        version = self._store.version
        if self._bounds_cache is None or self._bounds_cache[0] != version:
            self._bounds_cache = (version, self._engine.compute_bounds(self._store.items))
        return self._bounds_cache[1]

    @property
    def filters(self) -> FilterState:
        version = self._store.version
        if self._filters_version != version:
            self._filters = self._engine.reconcile(self._filters, self.bounds)
            self._filters_version = version
        return self._filters

    def update_filters(self, state: FilterState | None = None, **changes: Any) -> FilterState:
        """Replace the filter state, or patch fields of it. Patches are re-validated."""
        base = state or self.filters
        self._filters = FilterState.model_validate({**base.model_dump(), **changes}) if changes else base
        self._filters_version = self._store.version
        self._notify()
        return self._filters

    def reset_filters(self) -> FilterState:
        """Back to the default filters, widened to the current bounds."""
        self._filters = self._engine.default_filters(self._settings.relevance_threshold)
        self._filters_version = -1
        self._notify()
        return self.filters

    @property
    def has_active_filters(self) -> bool:
        return self.filters.has_active_filters

    def filtered_grouped_view(
        self,
        filter_state: FilterState | None = None,
        *,
        bucket_by_date: bool = True,
        now: datetime | None = None,
    ) -> GroupedView:
        return self._engine.apply(
            self._store.items,
            filter_state or self.filters,
            bucket_by_date=bucket_by_date,
            now=now,
        )

    # =========================
    # State
    # =========================

    @property
    def session(self) -> SearchSession | None:
        return self._session

    @property
    def items(self) -> tuple[Listing, ...]:
        return self._store.items

    @property
    def stream(self) -> StreamHandle | None:
        return self._stream

    @property
    def error(self) -> SearchClientError | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        if self._lifecycle.is_loading:
            return True
        return self._session is not None and not self._settled and self._error is None and not self._disposed

    @property
    def status(self) -> ControllerStatus:
        if self._session is None:
            return "idle"
        if self._error is not None:
            return "error"
        if len(self._store):
            return "ready"
        if self.is_loading:
            return "loading"
        return "empty"

    def snapshot(self) -> ControllerSnapshot:
        p = self._paginator
        return ControllerSnapshot(
            status=self.status,
            session=self._session,
            item_count=len(self._store),
            current_page=p.local_page,
            total_local_pages=p.total_local_pages,
            has_next=p.has_next or self._lifecycle.is_loading_background,
            has_previous=p.has_previous,
            start_index=p.start_index,
            end_index=p.end_index,
            is_loading=self.is_loading,
            is_loading_next_batch=self._lifecycle.is_loading_background,
            is_complete=bool(self._meta.get("complete")),
            error=str(self._error) if self._error is not None else None,
            error_kind=self._error.kind if self._error is not None else None,
            source=self._meta.get("source") or "unknown",
            api_calls_made=self._meta.get("api_calls_made"),
            relevance_score=self._meta.get("relevance_score"),
            relevance_reason=self._meta.get("relevance_reason"),
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # =========================
    # Teardown
    # =========================

    async def wait_idle(self) -> None:
        """Wait until no load (including prefetches it triggers) is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def dispose(self) -> None:
        """Cancel everything in flight and stop applying results. Idempotent."""
        if self._disposed:
            return
        self._teardown_current("dispose")
        self._disposed = True
        self._listeners.clear()
        logger.debug("controller disposed")

    async def aclose(self) -> None:
        self.dispose()
        await self.wait_idle()
        if self._owns_source and isinstance(self._source, HttpDataSource):
            await self._source.aclose()

    async def __aenter__(self) -> PropertySearchController:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # =========================
    # Internals: session lifecycle
    # =========================

    def _begin(self, session: SearchSession) -> int:
        self._ensure_open()
        self._teardown_current("new session")
        self._session = session
        self._store.reset()
        self._paginator.reset(prefetch=session.mode == "batch")
        logger.info("session started: %s", session.describe())
        self._notify()
        return self._generation

    def _teardown_current(self, reason: str) -> None:
        if self._stream is not None:
            self._streams.close(self._stream)
            self._stream = None
        self._lifecycle.cancel(reason)
        self._generation += 1
        self._pending_offsets.clear()
        self._settled = False
        self._error = None
        self._meta = {}

    def _ensure_open(self) -> None:
        if self._disposed:
            raise RuntimeError("controller has been disposed")

    def _spawn(self, coro: Coroutine[Any, Any, Outcome], *, name: str) -> asyncio.Task[Outcome]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._track(task)
        return task

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("background task %s crashed", task.get_name(), exc_info=task.exception())

    # =========================
    # Internals: batch mode
    # =========================

    def _can_issue(self) -> bool:
        return not self._lifecycle.busy and not self._pending_offsets

    def _schedule_prefetch(self, offset: int) -> None:
        self._load_offset(offset, self._generation, kind="background")

    def _load_offset(self, offset: int, generation: int, *, kind: RequestKind) -> asyncio.Task[Outcome]:
        self._store.mark_requested(offset)
        self._pending_offsets.add(offset)
        return self._spawn(self._load_batch(offset, generation, kind), name=f"batch@{offset}")

    async def _load_batch(self, offset: int, generation: int, kind: RequestKind) -> Outcome:
        session = self._session
        if generation != self._generation or session is None:
            return Aborted("stale session")

        limit = self._settings.batch_size
        try:
            outcome = await self._lifecycle.issue(
                lambda token: self._source.fetch_batch(
                    session.query,
                    offset=offset,
                    limit=limit,
                    property_type=session.property_type,
                    message_type=session.message_type,
                ),
                kind=kind,
                label=f"batch@{offset}",
                timeout_s=self._settings.request_timeout_s,
            )
        finally:
            if generation == self._generation:
                self._pending_offsets.discard(offset)

        if generation != self._generation:
            return Aborted("stale session")

        if isinstance(outcome, Completed):
            batch: Batch = outcome.payload
            added = self._store.append(batch.items)
            self._paginator.record_batch(exhausted=batch.exhausted)
            self._settled = True
            if batch.source:
                self._meta["source"] = batch.source
            if batch.api_calls_made is not None:
                self._meta["api_calls_made"] = batch.api_calls_made
            self._meta["complete"] = not self._paginator.has_more
            logger.info(
                "batch@%d: %d received, %d new, %d total (total hint %s)",
                offset,
                len(batch.items),
                added,
                len(self._store),
                batch.total_count,
            )
            self._notify()
            # A trigger page reached while this batch was loading fires now.
            self._paginator.check_prefetch()
        elif isinstance(outcome, Failed):
            self._store.release(offset)
            self._paginator.halt()
            self._settled = True
            self._error = outcome.error
            logger.error("batch@%d failed (%s): %s", offset, outcome.error.kind, outcome.error)
            self._notify()
        else:
            self._store.release(offset)
        return outcome

    # =========================
    # Internals: stream / scrape
    # =========================

    def _on_stream_update(self, handle: StreamHandle) -> None:
        if handle is not self._stream:
            return
        if handle.error is not None:
            self._error = handle.error
        if handle.is_complete and handle.summary is not None:
            summary = handle.summary
            self._meta.update(
                complete=True,
                source=summary.source or handle.source,
                api_calls_made=summary.api_calls_made,
                relevance_score=summary.relevance_score,
                relevance_reason=summary.relevance_reason,
            )
        self._settled = handle.done
        self._notify()

    async def _load_scrape(self, session: SearchSession, generation: int) -> Outcome:
        if generation != self._generation:
            return Aborted("stale session")
        url = session.target_url or ""
        outcome = await self._lifecycle.issue(
            lambda token: self._source.scrape(url, orig_query=session.orig_query),
            label="scrape",
            timeout_s=self._settings.request_timeout_s,
        )
        if generation != self._generation:
            return Aborted("stale session")

        if isinstance(outcome, Completed):
            result: ScrapeResult = outcome.payload
            added = self._store.append(result.properties)
            self._meta.update(
                complete=True,
                source=result.source or "unknown",
                api_calls_made=result.api_calls_made,
                relevance_score=result.relevance_score,
                relevance_reason=result.relevance_reason,
            )
            self._settled = True
            logger.info("scrape %s: %d properties (%d new)", url, len(result.properties), added)
        elif isinstance(outcome, Failed):
            self._error = outcome.error
            self._settled = True
            logger.error("scrape %s failed (%s): %s", url, outcome.error.kind, outcome.error)
        self._notify()
        return outcome

    # =========================
    # Internals: notification
    # =========================

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("listener %r raised; continuing", listener)
