# tests/unit/test_accumulation_store.py
from __future__ import annotations

from propsearch.core.acquire.store import AccumulationStore
from tests.utils import make_listing, make_listings


def test_append_keeps_first_occurrence_and_order() -> None:
    store = AccumulationStore()
    first = make_listing(1, title="original")
    assert store.append([make_listing(0), first, make_listing(2)]) == 3

    dup = make_listing(1, title="later duplicate")
    assert store.append([dup, make_listing(3)]) == 1

    assert [i.key for i in store] == [f"https://portal.test/item/{n}" for n in range(4)]
    assert store.items[1].title == "original"  # never merged or replaced
    assert store.has(first.key)
    assert len(store) == 4


def test_key_falls_back_to_id_then_url() -> None:
    store = AccumulationStore()
    a = make_listing(0, property_url=None, id=42)
    b = make_listing(0, property_url=None, id=None, url="https://x.test/1")
    store.append([a, b])
    assert a.key == "42"
    assert b.key == "https://x.test/1"
    assert store.append([make_listing(9, property_url=None, id="42")]) == 0


def test_window_slices_and_clamps() -> None:
    store = AccumulationStore()
    store.append(make_listings(10))
    assert [i.key for i in store.window(8, 20)] == ["https://portal.test/item/8", "https://portal.test/item/9"]
    assert store.window(20, 40) == []
    assert len(store.window(-5, 3)) == 3


def test_version_bumps_only_on_change() -> None:
    store = AccumulationStore()
    v0 = store.version
    store.append(make_listings(2))
    v1 = store.version
    assert v1 > v0
    store.append(make_listings(2))  # all duplicates
    assert store.version == v1
    store.reset()
    assert store.version > v1


def test_requested_offsets_bookkeeping() -> None:
    store = AccumulationStore()
    assert store.mark_requested(0) is True
    assert store.mark_requested(0) is False
    assert store.mark_requested(900) is True
    assert store.is_requested(900)

    store.release(900)
    assert not store.is_requested(900)
    assert store.mark_requested(900) is True
    assert store.requested_offsets == frozenset({0, 900})


def test_reset_clears_items_and_offsets_together() -> None:
    store = AccumulationStore()
    store.append(make_listings(3))
    store.mark_requested(0)
    store.reset()
    assert len(store) == 0
    assert store.requested_offsets == frozenset()
    # Keys are forgotten too, so a new session may see the same listing again
    assert store.append(make_listings(1)) == 1
