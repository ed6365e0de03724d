# propsearch/core/acquire/paginator.py
"""
Local pages over an accumulated set, with deterministic batch prefetch.

Backend batches are large (default 900) and local pages small (default 200),
so one batch spans `pages_per_batch = ceil(batch_size / page_size)` local
pages. When the user reaches `trigger_page` inside a batch, the next batch is
fetched in the background:

    page 4 (batch 0) → offset 900
    page 9 (batch 1) → offset 1800

A given offset is requested at most once per session (tracked by the store),
and nothing is issued while another request is in flight; the controller calls
`check_prefetch()` again once that request settles.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

from propsearch.schemas.models import Listing

from .store import AccumulationStore

logger = logging.getLogger(__name__)


class WindowedPaginator:
    def __init__(
        self,
        store: AccumulationStore,
        *,
        page_size: int = 200,
        batch_size: int = 900,
        trigger_page: int = 4,
        loader: Callable[[int], object] | None = None,
        can_issue: Callable[[], bool] | None = None,
    ) -> None:
        if page_size <= 0 or batch_size <= 0:
            raise ValueError("page_size and batch_size must be positive")
        pages_per_batch = math.ceil(batch_size / page_size)
        if not 1 <= trigger_page <= pages_per_batch:
            raise ValueError(f"trigger_page must be within 1..{pages_per_batch}, got {trigger_page}")

        self._store = store
        self.page_size = page_size
        self.batch_size = batch_size
        self.trigger_page = trigger_page
        self.pages_per_batch = pages_per_batch
        self._loader = loader
        self._can_issue = can_issue

        self._page = 1
        self._has_more = True
        self._halted = False
        self._prefetch_enabled = True

    # ---------- Pure helpers ----------

    def batch_index(self, page: int | None = None) -> int:
        p = self._page if page is None else page
        return (max(1, p) - 1) // self.pages_per_batch

    def page_within_batch(self, page: int | None = None) -> int:
        p = self._page if page is None else page
        return (max(1, p) - 1) % self.pages_per_batch + 1

    def next_offset(self, page: int | None = None) -> int:
        return (self.batch_index(page) + 1) * self.batch_size

    # ---------- State ----------

    @property
    def local_page(self) -> int:
        return self._page

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def prefetch_enabled(self) -> bool:
        return self._prefetch_enabled

    @property
    def total_local_pages(self) -> int:
        return math.ceil(len(self._store) / self.page_size)

    @property
    def has_next(self) -> bool:
        return self._page < self.total_local_pages or (self._prefetch_enabled and self._has_more and not self._halted)

    @property
    def has_previous(self) -> bool:
        return self._page > 1

    @property
    def start_index(self) -> int:
        """0-based index of the first item on the current page."""
        return (self._page - 1) * self.page_size

    @property
    def end_index(self) -> int:
        """Exclusive end; equals start_index on an empty page."""
        return self.start_index + len(self.current_page_items())

    def current_page_items(self) -> list[Listing]:
        start = (self._page - 1) * self.page_size
        return self._store.window(start, start + self.page_size)

    # ---------- Navigation ----------

    def next(self) -> list[Listing]:
        # Always permitted: moving forward is how further batches are discovered.
        self._page += 1
        self.check_prefetch()
        return self.current_page_items()

    def previous(self) -> list[Listing]:
        self._page = max(1, self._page - 1)
        self.check_prefetch()
        return self.current_page_items()

    def go_to(self, page: int) -> list[Listing]:
        self._page = max(1, int(page))
        self.check_prefetch()
        return self.current_page_items()

    # ---------- Batch bookkeeping ----------

    def record_batch(self, *, exhausted: bool) -> None:
        """A short batch (fewer items than requested) ends remote pagination for the session."""
        if exhausted:
            logger.debug("end of data after %d items", len(self._store))
            self._has_more = False

    def halt(self) -> None:
        self._halted = True

    def reset(self, *, prefetch: bool = True) -> None:
        self._page = 1
        self._has_more = prefetch
        self._halted = False
        self._prefetch_enabled = prefetch

    def check_prefetch(self) -> int | None:
        """
        Issue the next batch if the current page is the trigger page of its batch.

        Returns the offset handed to the loader, or None when the rule did not fire.
        """
        if not self._prefetch_enabled or self._halted or not self._has_more:
            return None
        if self.page_within_batch() != self.trigger_page:
            return None

        offset = self.next_offset()
        if self._store.is_requested(offset):
            return None
        # Only extend a contiguous run of batches; a jump past unloaded batches must not skip one.
        if not self._store.is_requested(offset - self.batch_size):
            return None
        if self._can_issue is not None and not self._can_issue():
            return None

        self._store.mark_requested(offset)
        logger.debug("prefetch: page %d is trigger page of batch %d → offset %d", self._page, self.batch_index(), offset)
        if self._loader is not None:
            self._loader(offset)
        return offset
