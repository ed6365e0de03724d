# tests/unit/test_windowed_paginator.py
from __future__ import annotations

import pytest

from propsearch.core.acquire.paginator import WindowedPaginator
from propsearch.core.acquire.store import AccumulationStore
from tests.utils import make_listings


def _paginator(n_items: int = 900, **kw):
    store = AccumulationStore()
    store.mark_requested(0)
    store.append(make_listings(n_items))
    fired: list[int] = []
    p = WindowedPaginator(store, loader=fired.append, can_issue=lambda: True, **kw)
    return p, store, fired


def test_pure_helpers_with_defaults() -> None:
    p, _, _ = _paginator()
    assert p.pages_per_batch == 5
    assert [p.batch_index(n) for n in (1, 4, 5, 6, 9, 10, 11)] == [0, 0, 0, 1, 1, 1, 2]
    assert [p.page_within_batch(n) for n in (1, 4, 5, 6, 9)] == [1, 4, 5, 1, 4]
    assert p.next_offset(4) == 900
    assert p.next_offset(9) == 1800


def test_invalid_configuration() -> None:
    store = AccumulationStore()
    with pytest.raises(ValueError):
        WindowedPaginator(store, page_size=0)
    with pytest.raises(ValueError):
        WindowedPaginator(store, page_size=200, batch_size=400, trigger_page=3)


def test_prefetch_fires_exactly_once_on_trigger_page() -> None:
    p, store, fired = _paginator()
    p.next()
    p.next()
    assert fired == []
    p.next()  # page 4
    assert p.local_page == 4
    assert fired == [900]
    assert store.is_requested(900)

    # Leaving and re-entering the trigger page does not refetch
    p.next()
    p.previous()
    p.go_to(4)
    assert fired == [900]


def test_prefetch_skipped_while_request_in_flight_then_reevaluated() -> None:
    busy = {"value": True}
    store = AccumulationStore()
    store.mark_requested(0)
    store.append(make_listings(900))
    fired: list[int] = []
    p = WindowedPaginator(store, loader=fired.append, can_issue=lambda: not busy["value"])

    p.go_to(4)
    assert fired == []
    assert not store.is_requested(900)

    busy["value"] = False
    assert p.check_prefetch() == 900
    assert fired == [900]


def test_no_prefetch_past_unloaded_batches() -> None:
    p, store, fired = _paginator()
    p.go_to(9)  # batch 1 (offset 900) was never requested
    assert fired == []
    assert not store.is_requested(1800)


def test_end_of_data_and_halt_disable_prefetch() -> None:
    p, _, fired = _paginator()
    p.record_batch(exhausted=True)
    assert not p.has_more
    p.go_to(4)
    assert fired == []

    p2, _, fired2 = _paginator()
    p2.halt()
    p2.go_to(4)
    assert fired2 == []


def test_full_batch_keeps_has_more() -> None:
    p, _, _ = _paginator()
    p.record_batch(exhausted=False)
    assert p.has_more


def test_navigation_floors_at_one_and_next_is_always_allowed() -> None:
    p, _, _ = _paginator(n_items=250)
    p.previous()
    assert p.local_page == 1
    p.go_to(-3)
    assert p.local_page == 1

    assert len(p.next()) == 50
    assert p.next() == []  # past the data: empty page, not an error
    assert p.local_page == 3


def test_index_and_page_counters() -> None:
    p, _, _ = _paginator(n_items=450)
    assert p.total_local_pages == 3
    assert (p.start_index, p.end_index) == (0, 200)
    p.go_to(3)
    assert (p.start_index, p.end_index) == (400, 450)
    assert p.has_previous
    # Still more to discover remotely
    assert p.has_next
    p.record_batch(exhausted=True)
    assert not p.has_next


def test_reset_for_stream_mode_disables_prefetch() -> None:
    p, _, fired = _paginator()
    p.go_to(2)
    p.reset(prefetch=False)
    assert p.local_page == 1
    assert not p.prefetch_enabled
    p.go_to(4)
    assert fired == []
    assert p.has_next is True  # 900 items are 5 local pages
    p.go_to(5)
    assert p.has_next is False
