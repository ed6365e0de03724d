# propsearch/core/acquire/__init__.py
from .lifecycle import Aborted, CancelToken, Completed, Failed, Outcome, RequestLifecycleManager
from .paginator import WindowedPaginator
from .store import AccumulationStore
from .stream import StreamHandle, StreamIngestor

__all__ = [
    "CancelToken",
    "Completed",
    "Aborted",
    "Failed",
    "Outcome",
    "RequestLifecycleManager",
    "AccumulationStore",
    "WindowedPaginator",
    "StreamHandle",
    "StreamIngestor",
]
