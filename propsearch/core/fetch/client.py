# propsearch/core/fetch/client.py
from __future__ import annotations

import logging

import httpx

from propsearch.core.debug_log import debug_enabled
from propsearch.inputs.settings import ClientSettings


def new_client(
    settings: ClientSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create a configured AsyncClient for the listing backend.

    Uses a bounded connection pool, connect retries for transient network errors,
    and an optional proxy. Passing `transport` (e.g. httpx.MockTransport in tests)
    replaces the pooled transport entirely.
    """
    cfg = settings or ClientSettings()

    if debug_enabled():
        logging.getLogger("httpx").setLevel(logging.DEBUG)

    if transport is None:
        limits = httpx.Limits(
            max_keepalive_connections=cfg.max_keepalive_connections,
            max_connections=cfg.max_connections,
        )
        transport = httpx.AsyncHTTPTransport(retries=cfg.retries, limits=limits, proxy=cfg.proxy)

    return httpx.AsyncClient(
        base_url=cfg.api_base_url,
        timeout=httpx.Timeout(cfg.http_timeout_s),
        headers={
            "User-Agent": cfg.user_agent,
            "Accept": "application/json",
            "Cache-Control": "no-cache",
        },
        follow_redirects=True,
        transport=transport,
    )
