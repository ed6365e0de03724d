# propsearch/core/fetch/__init__.py
from .client import new_client
from .datasource import HttpDataSource, RemoteDataSource
from .errors import (
    SESSION_ERRORS,
    Cancelled,
    ParseError,
    RemoteError,
    SearchClientError,
    StreamClosedUnexpectedly,
    TransportError,
    classify_client_error,
    client_error_guard,
)
from .source import PropertySource, detect_source
from .sse import SseEvent, iter_sse_events

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
    "new_client",
    "RemoteDataSource",
    "HttpDataSource",
    "SseEvent",
    "iter_sse_events",
    "PropertySource",
    "detect_source",
]
