# propsearch/core/fetch/errors.py
"""
Typed errors + utilities for the listing backend client.

Exports
-------
- SearchClientError, TransportError, RemoteError, ParseError,
  StreamClosedUnexpectedly, Cancelled
- SESSION_ERRORS
- classify_client_error(exc)
- client_error_guard()

Propagation
-----------
- `Cancelled` never leaves the acquisition layer; it is how a superseded
  request reports itself internally.
- `ParseError` for a single streamed item is logged and the item dropped.
- Everything else in SESSION_ERRORS becomes the session-level error shown to
  the caller (distinct from an empty result set).
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager

import httpx
from pydantic import ValidationError

# =========================
# Exception types
# =========================


class SearchClientError(RuntimeError):
    """Base class for failures raised by the acquisition client."""

    kind: str = "error"


class TransportError(SearchClientError):
    """Network/HTTP failure while talking to the backend."""

    kind = "transport"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteError(TransportError):
    """The backend answered, but reported a failure (error event, success=false)."""

    kind = "remote"


class ParseError(SearchClientError):
    """A response body or event payload could not be decoded into our models."""

    kind = "parse"


class StreamClosedUnexpectedly(SearchClientError):
    """The event stream ended before its `complete` event arrived."""

    kind = "stream_closed"

    def __init__(self, message: str = "Connection error: Stream closed unexpectedly") -> None:
        super().__init__(message)


class Cancelled(SearchClientError):
    """Internal signal: the request was superseded or torn down."""

    kind = "cancelled"


# Selector tuple for the errors that end a session
SESSION_ERRORS = (
    TransportError,
    ParseError,
    StreamClosedUnexpectedly,
)

# =========================
# Classification helpers
# =========================


def classify_client_error(exc: Exception) -> SearchClientError:
    """
    Map arbitrary exceptions raised while talking to the backend onto the taxonomy.

    Heuristics:
      - Any SearchClientError subclass → passed through
      - httpx.HTTPStatusError → TransportError (keeps the status code)
      - httpx.TimeoutException / other httpx errors → TransportError
      - asyncio/builtin TimeoutError → TransportError
      - json / pydantic decode failures → ParseError
      - Fallback → SearchClientError
    """
    if isinstance(exc, SearchClientError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        return TransportError(str(exc), status_code=exc.response.status_code)

    if isinstance(exc, httpx.TimeoutException):
        return TransportError(f"Request timed out: {exc}")

    if isinstance(exc, httpx.HTTPError):
        return TransportError(f"{type(exc).__name__}: {exc}")

    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return TransportError("Request timed out")

    if isinstance(exc, (json.JSONDecodeError, ValidationError)):
        return ParseError(f"{type(exc).__name__}: {exc}")

    return SearchClientError(f"{type(exc).__name__}: {exc}")


@contextmanager
def client_error_guard() -> Iterator[None]:
    """Context manager to normalize unexpected exceptions from client internals."""
    try:
        yield
    except SearchClientError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_client_error(exc) from exc


__all__ = [
    "SearchClientError",
    "TransportError",
    "RemoteError",
    "ParseError",
    "StreamClosedUnexpectedly",
    "Cancelled",
    "SESSION_ERRORS",
    "classify_client_error",
    "client_error_guard",
]
