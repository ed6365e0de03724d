# propsearch/core/fetch/datasource.py
"""
Remote data source: the two transport modes the listing backend offers.

Purpose
-------
Give the acquisition layer one narrow, swappable contract for talking to the
backend:
  - request/response batch fetch by (offset, limit)
  - a server-push event stream keyed by a portal URL
plus the two auxiliary calls the listing page uses (one-shot scrape, cache reset).

Design
------
- Protocol `RemoteDataSource` keeps callers transport-agnostic; tests drive the
  controller with an in-memory implementation.
- `HttpDataSource` implements it over a shared httpx.AsyncClient.
- All failures leave this module as SearchClientError subclasses. Individual
  malformed listings inside an otherwise valid body are dropped with a warning;
  a malformed body is a ParseError.

Public API
----------
class RemoteDataSource(Protocol):
    async def fetch_batch(query, *, offset, limit, property_type=None, message_type=None) -> Batch
    def open_stream(target_url, *, orig_query=None) -> AsyncIterator[SseEvent]
    async def scrape(target_url, *, orig_query=None) -> ScrapeResult
    async def reset_cache(target_url) -> None

class HttpDataSource(RemoteDataSource)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from propsearch.inputs.settings import ClientSettings
from propsearch.schemas.models import Batch, Listing, ScrapeResult

from .client import new_client
from .errors import ParseError, RemoteError, TransportError, client_error_guard
from .source import detect_source
from .sse import SseEvent, iter_sse_events

logger = logging.getLogger(__name__)


class RemoteDataSource(Protocol):
    async def fetch_batch(
        self,
        query: str,
        *,
        offset: int,
        limit: int,
        property_type: str | None = None,
        message_type: str | None = None,
    ) -> Batch: ...

    def open_stream(self, target_url: str, *, orig_query: str | None = None) -> AsyncIterator[SseEvent]: ...

    async def scrape(self, target_url: str, *, orig_query: str | None = None) -> ScrapeResult: ...

    async def reset_cache(self, target_url: str) -> None: ...


# -------------------------
# Response helpers
# -------------------------


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for k in ("detail", "message", "error"):
            if body.get(k):
                return str(body[k])
    return f"HTTP error! status: {resp.status_code}"


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_error:
        raise TransportError(_error_detail(resp), status_code=resp.status_code)


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError as e:
        raise ParseError(f"Response from {resp.request.url.path} is not JSON: {e}") from e
    if not isinstance(body, dict):
        raise ParseError(f"Response from {resp.request.url.path} is not a JSON object")
    return body


def _parse_listings(raw: Any, *, where: str) -> list[Listing]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ParseError(f"{where}: expected a list of listings, got {type(raw).__name__}")
    out: list[Listing] = []
    for i, entry in enumerate(raw):
        try:
            out.append(Listing.model_validate(entry))
        except ValidationError as e:
            logger.warning("%s: dropping malformed listing #%d (%s)", where, i, e.errors()[0].get("msg", e))
    return out


def _optional_int(v: Any) -> int | None:
    try:
        return int(v) if v is not None else None
    except (TypeError, ValueError):
        return None


# -------------------------
# HTTP implementation
# -------------------------


class HttpDataSource:
    """RemoteDataSource over httpx. Owns its client unless one is injected."""

    def __init__(self, settings: ClientSettings | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings or ClientSettings()
        self._client = client or new_client(self._settings)
        self._owns_client = client is None

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpDataSource:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def fetch_batch(
        self,
        query: str,
        *,
        offset: int,
        limit: int,
        property_type: str | None = None,
        message_type: str | None = None,
    ) -> Batch:
        params = {"query": query.strip(), "limit": str(limit), "offset": str(offset)}
        if property_type:
            params["property_type"] = property_type
        if message_type:
            params["message_type"] = message_type

        with client_error_guard():
            resp = await self._client.get(self._settings.endpoints.batch, params=params)
            _raise_for_status(resp)
            body = _json_object(resp)

            raw_items = body["items"] if "items" in body else body.get("data")
            items = _parse_listings(raw_items, where=f"batch@{offset}")
            metadata = body.get("metadata") if isinstance(body.get("metadata"), dict) else {}
            total = next(
                (v for v in (_optional_int(body.get(k)) for k in ("totalCount", "total_count", "count")) if v is not None),
                None,
            )
            batch = Batch(
                items=items,
                offset=offset,
                limit=limit,
                total_count=total,
                source=body.get("source") or metadata.get("source"),
                api_calls_made=_optional_int(body.get("api_calls_made")),
            )

        logger.debug("batch offset=%d limit=%d → %d items (total hint %s)", offset, limit, len(items), total)
        return batch

    async def open_stream(self, target_url: str, *, orig_query: str | None = None) -> AsyncIterator[SseEvent]:
        """
        Yield raw SSE events until the server closes the connection.
        Deciding whether a close is premature is the ingestor's job.
        """
        ep = self._settings.endpoints
        path = ep.stream_magicbricks if detect_source(target_url) == "magicbricks" else ep.stream
        params = {"url": target_url, "orig_query": orig_query or ""}
        timeout = httpx.Timeout(self._settings.http_timeout_s, read=self._settings.stream_read_timeout_s)

        with client_error_guard():
            async with self._client.stream(
                "GET",
                path,
                params=params,
                timeout=timeout,
                headers={"Accept": "text/event-stream"},
            ) as resp:
                if resp.is_error:
                    await resp.aread()
                    _raise_for_status(resp)
                logger.debug("stream opened for %s via %s", target_url, self._settings.url_for(path))
                async for event in iter_sse_events(resp.aiter_lines()):
                    yield event

    async def scrape(self, target_url: str, *, orig_query: str | None = None) -> ScrapeResult:
        ep = self._settings.endpoints
        source = detect_source(target_url)
        path = ep.scrape_magicbricks if source == "magicbricks" else ep.scrape
        params = {
            "url": target_url,
            "batch_size": str(self._settings.scrape_batch_size),
            "orig_query": orig_query or "",
        }

        with client_error_guard():
            resp = await self._client.get(path, params=params)
            _raise_for_status(resp)
            body = _json_object(resp)
            if body.get("success") is False:
                raise RemoteError(str(body.get("error") or "Failed to fetch properties"))

            properties = _parse_listings(body.get("properties"), where=f"scrape:{source}")
            fields = {k: v for k, v in body.items() if k != "properties"}
            fields.setdefault("source", source)
            result = ScrapeResult.model_validate({**fields, "properties": properties})

        logger.debug("scrape %s → %d properties, %s api calls", target_url, len(properties), result.api_calls_made)
        return result

    async def reset_cache(self, target_url: str) -> None:
        with client_error_guard():
            resp = await self._client.delete(self._settings.endpoints.cache_reset, params={"url": target_url})
            _raise_for_status(resp)
        logger.info("backend cache cleared for %s", target_url)
