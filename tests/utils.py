# tests/utils.py
"""
Single source of truth for test data, factories, and the in-memory backend.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from typing import Any

from propsearch.core.fetch.sse import SseEvent
from propsearch.inputs.settings import ClientSettings
from propsearch.schemas.models import Batch, Listing, ScrapeResult

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_BATCH_SIZE = 900
DEFAULT_PAGE_SIZE = 200
DEFAULT_TRIGGER_PAGE = 4

MAGICBRICKS_URL = "https://www.magicbricks.com/property-for-sale/residential-real-estate?cityName=Mumbai"
SQUAREYARDS_URL = "https://www.squareyards.com/sale/property-for-sale-in-mumbai"


def make_settings(**overrides: Any) -> ClientSettings:
    base: dict[str, Any] = {
        "api_base_url": "http://backend.test",
        "batch_size": DEFAULT_BATCH_SIZE,
        "page_size": DEFAULT_PAGE_SIZE,
        "trigger_page": DEFAULT_TRIGGER_PAGE,
    }
    base.update(overrides)
    return ClientSettings.model_validate(base)


# -----------------------------
# Listing factories
# -----------------------------


def listing_payload(i: int, *, prefix: str = "item", **overrides: Any) -> dict[str, Any]:
    """Raw backend-shaped listing dict."""
    payload: dict[str, Any] = {
        "property_url": f"https://portal.test/{prefix}/{i}",
        "title": f"{prefix.title()} flat {i}",
        "price": "₹1.5 Cr",
        "area": "1,200 sqft",
        "relevance_score": 6.0,
        "relevance_reason": "matches location",
        "matches": ["location"],
        "mismatches": [],
        "posted_date": "2 hours ago",
    }
    payload.update(overrides)
    return payload


def make_listing(i: int = 0, *, prefix: str = "item", **overrides: Any) -> Listing:
    return Listing.model_validate(listing_payload(i, prefix=prefix, **overrides))


def make_listings(n: int, *, start: int = 0, prefix: str = "item", **overrides: Any) -> list[Listing]:
    return [make_listing(i, prefix=prefix, **overrides) for i in range(start, start + n)]


# -----------------------------
# SSE helpers
# -----------------------------


def property_event(payload: dict[str, Any] | str) -> SseEvent:
    return SseEvent(event="property", data=payload if isinstance(payload, str) else json.dumps(payload))


def complete_event(count: int, **extra: Any) -> SseEvent:
    return SseEvent(event="complete", data=json.dumps({"count": count, **extra}))


def error_event(message: str, *, as_json: bool = True) -> SseEvent:
    return SseEvent(event="error", data=json.dumps({"error": message}) if as_json else message)


def sse_body(events: Iterable[SseEvent]) -> str:
    """Wire format for httpx.MockTransport responses."""
    return "".join(f"event: {e.event}\ndata: {e.data}\n\n" for e in events)


# -----------------------------
# In-memory backend
# -----------------------------


@dataclass
class FakeDataSource:
    """
    Scripted RemoteDataSource.

    - Each query maps to a number of available listings (`catalog`); batches
      are slices of that sequence.
    - `gates[(query, offset)]` holds a fetch until the event is set.
    - `failures[(query, offset)]` raises once for that fetch.
    - `ignore_cancel` makes a gated fetch return its data even after being
      cancelled, simulating a transport that resolves late.
    - `stream_events` is replayed for every stream; `stream_hold` keeps the
      stream open after the script until set.
    """

    catalog: dict[str, int] = field(default_factory=dict)
    gates: dict[tuple[str, int], asyncio.Event] = field(default_factory=dict)
    failures: dict[tuple[str, int], Exception] = field(default_factory=dict)
    ignore_cancel: bool = False

    stream_events: list[SseEvent] = field(default_factory=list)
    stream_hold: asyncio.Event | None = None
    stream_error: Exception | None = None

    scrape_result: ScrapeResult | None = None
    scrape_error: Exception | None = None
    reset_error: Exception | None = None

    batch_calls: list[tuple[str, int, int]] = field(default_factory=list)
    stream_calls: list[tuple[str, str | None]] = field(default_factory=list)
    streams_closed: int = 0
    scrape_calls: list[str] = field(default_factory=list)
    reset_calls: list[str] = field(default_factory=list)

    @property
    def batch_offsets(self) -> list[int]:
        return [offset for _q, offset, _l in self.batch_calls]

    async def fetch_batch(
        self,
        query: str,
        *,
        offset: int,
        limit: int,
        property_type: str | None = None,
        message_type: str | None = None,
    ) -> Batch:
        self.batch_calls.append((query, offset, limit))
        gate = self.gates.get((query, offset))
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                if not self.ignore_cancel:
                    raise

        failure = self.failures.pop((query, offset), None)
        if failure is not None:
            raise failure

        total = self.catalog.get(query, 0)
        stop = min(total, offset + limit)
        items = [make_listing(i, prefix=query.replace(" ", "-")) for i in range(offset, stop)]
        return Batch(items=items, offset=offset, limit=limit, total_count=total, source="whatsapp")

    async def open_stream(self, target_url: str, *, orig_query: str | None = None) -> AsyncIterator[SseEvent]:
        self.stream_calls.append((target_url, orig_query))
        try:
            for event in list(self.stream_events):
                await asyncio.sleep(0)
                yield event
            if self.stream_error is not None:
                raise self.stream_error
            if self.stream_hold is not None:
                await self.stream_hold.wait()
        finally:
            self.streams_closed += 1

    async def scrape(self, target_url: str, *, orig_query: str | None = None) -> ScrapeResult:
        self.scrape_calls.append(target_url)
        await asyncio.sleep(0)
        if self.scrape_error is not None:
            raise self.scrape_error
        return self.scrape_result or ScrapeResult(count=0, source="unknown")

    async def reset_cache(self, target_url: str) -> None:
        self.reset_calls.append(target_url)
        if self.reset_error is not None:
            raise self.reset_error


async def drain() -> None:
    """Let every ready callback run (a few loop turns)."""
    for _ in range(20):
        await asyncio.sleep(0)
