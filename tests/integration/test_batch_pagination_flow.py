# tests/integration/test_batch_pagination_flow.py
from __future__ import annotations

import asyncio

from propsearch.core.acquire.lifecycle import Completed, Failed
from propsearch.core.fetch.errors import TransportError
from propsearch.orchestrators.search_controller import PropertySearchController
from propsearch.schemas.models import ControllerSnapshot
from tests.utils import FakeDataSource, drain, make_settings


def test_batch_pagination_end_to_end() -> None:
    """2200 results behind batches of 900 / pages of 200 / trigger page 4."""

    async def scenario():
        source = FakeDataSource(catalog={"flats": 2200})
        controller = PropertySearchController(source, make_settings())
        statuses: list[str] = []
        controller.subscribe(lambda snap: statuses.append(snap.status))

        outcome = await controller.search("flats")
        assert isinstance(outcome, Completed)
        assert source.batch_offsets == [0]
        assert len(controller.current_page()) == 200
        snap = controller.snapshot()
        assert (snap.status, snap.item_count, snap.total_local_pages) == ("ready", 900, 5)
        assert snap.has_next and not snap.has_previous
        assert "loading" in statuses and statuses[-1] == "ready"

        # Pages 2 and 3 never fetch; page 4 is the trigger page of batch 0
        controller.next()
        controller.next()
        assert source.batch_offsets == [0]
        controller.next()
        await controller.wait_idle()
        assert source.batch_offsets == [0, 900]
        assert len(controller.items) == 1800

        # Batch 1 spans pages 6–10; its trigger page is 9
        for page in range(5, 10):
            controller.go_to_page(page)
            await controller.wait_idle()
        assert source.batch_offsets == [0, 900, 1800]
        assert len(controller.items) == 2200

        # Third batch was short (400 < 900): end of data
        snap = controller.snapshot()
        assert snap.is_complete

        page_11 = controller.go_to_page(11)
        assert len(page_11) == 200
        snap = controller.snapshot()
        assert (snap.start_index, snap.end_index) == (2000, 2200)
        assert not snap.has_next

        assert controller.next() == []  # page 12: empty but allowed
        controller.go_to_page(14)  # trigger page of batch 2, but nothing more to fetch
        await controller.wait_idle()
        assert source.batch_offsets == [0, 900, 1800]

        # Items are the backend order, each exactly once
        keys = [i.key for i in controller.items]
        assert len(set(keys)) == len(keys) == 2200
        assert keys[0].endswith("/0") and keys[-1].endswith("/2199")

    asyncio.run(scenario())


def test_trigger_reached_while_first_batch_loads_fires_after_it_settles() -> None:
    async def scenario():
        gate = asyncio.Event()
        source = FakeDataSource(catalog={"flats": 2000}, gates={("flats", 0): gate})
        controller = PropertySearchController(source, make_settings())

        task = controller.search("flats")
        await drain()
        assert controller.snapshot().status == "loading"

        assert controller.go_to_page(4) == []
        await drain()
        assert source.batch_offsets == [0]  # in flight: prefetch deferred

        gate.set()
        await task
        await controller.wait_idle()
        assert source.batch_offsets == [0, 900]
        assert len(controller.items) == 1800

    asyncio.run(scenario())


def test_prefetch_failure_keeps_items_halts_and_refresh_recovers() -> None:
    async def scenario():
        source = FakeDataSource(
            catalog={"flats": 2000},
            failures={("flats", 900): TransportError("HTTP error! status: 502", status_code=502)},
        )
        controller = PropertySearchController(source, make_settings())
        snaps: list[ControllerSnapshot] = []
        controller.subscribe(snaps.append)

        await controller.search("flats")
        controller.go_to_page(4)
        await controller.wait_idle()

        snap = controller.snapshot()
        assert snap.status == "error"
        assert snap.error_kind == "transport"
        assert snap.error == "HTTP error! status: 502"
        assert snap.item_count == 900  # accumulated items survive
        assert not snap.is_loading and not snap.is_loading_next_batch
        assert snaps[-1].status == "error"

        # Prefetch is halted for this session
        controller.go_to_page(5)
        controller.go_to_page(4)
        await controller.wait_idle()
        assert source.batch_offsets == [0, 900]

        # Retry from scratch; the failure was one-shot
        outcome = await controller.refresh()
        assert isinstance(outcome, Completed)
        assert controller.snapshot().status == "ready"
        assert controller.snapshot().current_page == 1
        controller.go_to_page(4)
        await controller.wait_idle()
        assert source.batch_offsets == [0, 900, 0, 900]
        assert len(controller.items) == 1800

    asyncio.run(scenario())


def test_first_batch_failure_is_error_not_empty() -> None:
    async def scenario():
        source = FakeDataSource(
            catalog={"flats": 10},
            failures={("flats", 0): TransportError("connection refused")},
        )
        controller = PropertySearchController(source, make_settings())
        outcome = await controller.search("flats")
        failed = controller.snapshot()

        empty_source = FakeDataSource(catalog={})
        other = PropertySearchController(empty_source, make_settings())
        await other.search("nothing matches")
        empty = other.snapshot()
        return outcome, failed, empty

    outcome, failed, empty = asyncio.run(scenario())
    assert isinstance(outcome, Failed)
    assert failed.status == "error" and failed.error == "connection refused"
    assert empty.status == "empty" and empty.error is None
    assert empty.is_complete


def test_query_filters_are_forwarded() -> None:
    async def scenario():
        source = FakeDataSource(catalog={"villa": 3})
        controller = PropertySearchController(source, make_settings())
        await controller.search("  villa ", property_type="sale", message_type="offer")
        return source, controller

    source, controller = asyncio.run(scenario())
    assert source.batch_calls == [("villa", 0, 900)]
    assert controller.session is not None
    assert controller.session.property_type == "sale"
    assert controller.session.message_type == "offer"
