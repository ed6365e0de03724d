# propsearch/core/acquire/store.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from propsearch.schemas.models import Listing

logger = logging.getLogger(__name__)


class AccumulationStore:
    """
    Ordered, append-only collection of the listings of one session.

    Listings are de-duplicated on `Listing.key`; the first occurrence wins and
    keeps its position. The store also remembers which batch offsets have been
    requested so the same batch is never fetched twice in a session.
    """

    def __init__(self) -> None:
        self._items: list[Listing] = []
        self._keys: set[str] = set()
        self._requested: set[int] = set()
        self._version = 0

    # ---------- Items ----------

    def append(self, items: Iterable[Listing]) -> int:
        """Append in order, skipping keys already present. Returns how many were added."""
        added = 0
        for item in items:
            key = item.key
            if key in self._keys:
                continue
            self._keys.add(key)
            self._items.append(item)
            added += 1
        if added:
            self._version += 1
        return added

    def has(self, key: str) -> bool:
        return key in self._keys

    def window(self, start: int, stop: int) -> list[Listing]:
        return self._items[max(0, start) : max(0, stop)]

    @property
    def items(self) -> tuple[Listing, ...]:
        return tuple(self._items)

    @property
    def version(self) -> int:
        """Bumped on every mutation; lets readers cache derived views."""
        return self._version

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Listing]:
        return iter(tuple(self._items))

    # ---------- Batch offsets ----------

    def mark_requested(self, offset: int) -> bool:
        """Record that `offset` is being fetched. False if it already was."""
        if offset in self._requested:
            return False
        self._requested.add(offset)
        return True

    def is_requested(self, offset: int) -> bool:
        return offset in self._requested

    def release(self, offset: int) -> None:
        """Forget a requested offset (its fetch failed or was abandoned) so it can be retried."""
        self._requested.discard(offset)

    @property
    def requested_offsets(self) -> frozenset[int]:
        return frozenset(self._requested)

    # ---------- Lifecycle ----------

    def reset(self) -> None:
        if self._items or self._requested:
            logger.debug("store reset (%d items, offsets %s)", len(self._items), sorted(self._requested))
        self._items.clear()
        self._keys.clear()
        self._requested.clear()
        self._version += 1
