# main.py
"""
Entry Point — Property Search Client

Purpose
-------
Drive a PropertySearchController against a live backend from the terminal:
  search  – batch mode: fetch, then walk local pages (prefetch fires on the
            trigger page exactly as it would in a UI)
  stream  – stream mode: consume a portal URL's event stream until it ends
  scrape  – one-shot: fetch every property of a portal URL in one response

After the session settles, the filtered/grouped view is printed.

Exit status is 1 when the session ended in an error (distinct from an empty
result, which exits 0).

Usage
-----
    python main.py search "3bhk in bandra under 5cr" --pages 5
    python main.py stream "https://www.magicbricks.com/..." --orig-query "sea view"
    python main.py scrape "https://www.squareyards.com/..." --threshold 7 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from propsearch.core.debug_log import configure_logging
from propsearch.core.fetch import HttpDataSource
from propsearch.inputs.settings import ClientSettings, SettingsLoader
from propsearch.orchestrators.search_controller import PropertySearchController
from propsearch.schemas.models import ControllerSnapshot, DateBuckets, FilterState, GroupedView, Listing, ListingGroup

logger = logging.getLogger("propsearch.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Property search client")
    p.add_argument("--config", type=str, default=None, help="Path to settings JSON (defaults: propsearch.json, config.json).")
    p.add_argument("--api-url", type=str, default=None, help="Backend base URL (overrides config/env).")
    p.add_argument("--threshold", type=float, default=None, help="Relevance threshold for the grouped view.")
    p.add_argument("--filter", dest="text_filter", type=str, default="", help="Case-insensitive title/description filter.")
    p.add_argument("--location", type=str, default="", help="Location filter (substring unless --exact).")
    p.add_argument("--agent", type=str, default="", help="Agent or company name filter (substring unless --exact).")
    p.add_argument("--bedrooms", type=str, default="", help='Bedroom count; "6+" for six or more.')
    p.add_argument("--exact", action="store_true", help="Exact (whole value) location/agent matching.")
    p.add_argument("--no-dates", action="store_true", help="Do not bucket groups by posting date.")
    p.add_argument("--json", action="store_true", help="Print the grouped view as JSON.")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")

    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("search", help="Batch search by free-text query.")
    s.add_argument("query", type=str)
    s.add_argument("--property-type", type=str, default=None)
    s.add_argument("--message-type", type=str, default=None)
    s.add_argument("--pages", type=int, default=1, help="Local pages to walk (prefetch fires on the trigger page).")

    st = sub.add_parser("stream", help="Stream listings scraped from a portal URL.")
    st.add_argument("url", type=str)
    st.add_argument("--orig-query", type=str, default=None)

    sc = sub.add_parser("scrape", help="One-shot scrape of a portal URL.")
    sc.add_argument("url", type=str)
    sc.add_argument("--orig-query", type=str, default=None)

    return p.parse_args(argv)


def _load_settings(args: argparse.Namespace) -> ClientSettings:
    loader = SettingsLoader()
    cfg = loader.load(args.config)
    return loader.with_overrides(cfg, api_base_url=args.api_url, relevance_threshold=args.threshold)


def _print_page(snap: ControllerSnapshot, items: list[Listing]) -> None:
    print(
        f"page {snap.current_page}/{max(snap.total_local_pages, snap.current_page)} "
        f"[{snap.start_index + 1 if items else snap.start_index}–{snap.end_index} of {snap.item_count}]"
        + (" (loading next batch)" if snap.is_loading_next_batch else "")
    )
    for item in items[:5]:
        print(f"  - {item.summary()}")
    if len(items) > 5:
        print(f"  … {len(items) - 5} more")


def _print_group(title: str, group: ListingGroup) -> None:
    print(f"{title}: {len(group)}")
    buckets: DateBuckets | None = group.by_date
    if buckets is None:
        for item in group.items[:10]:
            print(f"  - {item.summary()}")
        return
    for category in ("today", "this_week", "this_month", "previous_months"):
        entries = buckets.get(category)
        if not entries:
            continue
        print(f"  {category.replace('_', ' ')} ({len(entries)})")
        for item in entries[:5]:
            print(f"    - {item.summary()}")


def _print_view(view: GroupedView, as_json: bool) -> None:
    if as_json:
        print(json.dumps(view.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return
    _print_group(f"Most relevant (score ≥ {view.threshold:g})", view.meets_threshold)
    _print_group("Other matches", view.below_threshold)


async def run(args: argparse.Namespace) -> int:
    settings = _load_settings(args)

    async with HttpDataSource(settings) as source:
        async with PropertySearchController(source, settings) as controller:
            if args.command == "search":
                await controller.search(args.query, property_type=args.property_type, message_type=args.message_type)
                _print_page(controller.snapshot(), controller.current_page())
                for _ in range(max(0, args.pages - 1)):
                    items = controller.next()
                    await controller.wait_idle()
                    _print_page(controller.snapshot(), items or controller.current_page())
            elif args.command == "stream":
                task = controller.open_stream(args.url, orig_query=args.orig_query)
                unsubscribe = controller.subscribe(
                    lambda snap: logger.debug("stream: %d items, status=%s", snap.item_count, snap.status)
                )
                await task
                unsubscribe()
            else:
                await controller.scrape(args.url, orig_query=args.orig_query)

            await controller.wait_idle()
            snap = controller.snapshot()
            print(f"status={snap.status} items={snap.item_count} source={snap.source} api_calls={snap.api_calls_made}")
            if snap.relevance_reason:
                print(f"relevance: {snap.relevance_score} – {snap.relevance_reason}")

            if snap.status == "error":
                print(f"Error: {snap.error}")
                return 1

            state: FilterState = controller.update_filters(
                search_query=args.text_filter,
                location=args.location,
                agent=args.agent,
                bedrooms=args.bedrooms,
                exact_match=args.exact,
            )
            _print_view(controller.filtered_grouped_view(state, bucket_by_date=not args.no_dates), args.json)
            return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else None)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
