# propsearch/core/filters/engine.py
"""
Filter / group views over an accumulated listing set.

Purpose
-------
Pure derivations the UI recomputes whenever the set or the filter state changes:
  - compute_bounds(items): slider bounds (price in crores, area in sqft)
  - reconcile(state, bounds): widen untouched ranges when bounds grow
  - apply(items, state): text → location/agent/bedrooms → price → area filters,
    split by relevance threshold, sorted by score, optionally bucketed by
    posting date

Bounds never shrink below the defaults, so a slider the user already moved
stays valid as more data arrives.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime

from propsearch.schemas.models import (
    BEDROOMS_OR_MORE,
    Bounds,
    DateBuckets,
    FilterState,
    GroupedView,
    Listing,
    ListingGroup,
    RangeBounds,
)

from .dates import classify_posted_date
from .parsing import RUPEES_PER_CRORE, extract_area, extract_price

DEFAULT_MAX_COST_CRORES = 10.0
DEFAULT_MAX_AREA_SQFT = 10_000.0
AREA_ROUNDING_FACTOR = 100
MISSING_SCORE_SORT_KEY = -1.0


def listing_price_crores(item: Listing) -> float:
    return extract_price(item.price_display) / RUPEES_PER_CRORE


def listing_area_sqft(item: Listing) -> float:
    return extract_area(item.area_display)


def _text_matches(value: str, needle: str, exact: bool) -> bool:
    return value == needle if exact else needle in value


class FilterGroupEngine:
    def __init__(
        self,
        *,
        default_cost_range: tuple[float, float] = (0.0, DEFAULT_MAX_COST_CRORES),
        default_area_range: tuple[float, float] = (0.0, DEFAULT_MAX_AREA_SQFT),
        area_rounding: int = AREA_ROUNDING_FACTOR,
    ) -> None:
        self.default_cost_range = default_cost_range
        self.default_area_range = default_area_range
        self.area_rounding = area_rounding

    def default_bounds(self) -> Bounds:
        return Bounds(
            price=RangeBounds(min=self.default_cost_range[0], max=self.default_cost_range[1]),
            area=RangeBounds(min=self.default_area_range[0], max=self.default_area_range[1]),
        )

    def default_filters(self, relevance_threshold: float = 5.0) -> FilterState:
        return FilterState(
            cost_range=self.default_cost_range,
            area_range=self.default_area_range,
            relevance_threshold=relevance_threshold,
        )

    # ---------- Bounds ----------

    def compute_bounds(self, items: Iterable[Listing]) -> Bounds:
        prices: list[float] = []
        areas: list[float] = []
        for item in items:
            p = extract_price(item.price_display)
            if p > 0:
                prices.append(p)
            a = extract_area(item.area_display)
            if a > 0:
                areas.append(a)

        cost_lo, cost_hi = self.default_cost_range
        area_lo, area_hi = self.default_area_range
        r = self.area_rounding

        if prices:
            cost_lo = min(cost_lo, float(math.floor(min(prices) / RUPEES_PER_CRORE)))
            cost_hi = max(cost_hi, float(math.ceil(max(prices) / RUPEES_PER_CRORE)))
        if areas:
            area_lo = min(area_lo, float(math.floor(min(areas) / r) * r))
            area_hi = max(area_hi, float(math.ceil(max(areas) / r) * r))

        return Bounds(price=RangeBounds(min=cost_lo, max=cost_hi), area=RangeBounds(min=area_lo, max=area_hi))

    def reconcile(self, state: FilterState, bounds: Bounds) -> FilterState:
        """Widen a range to the bounds only while its upper end is still the default."""
        updates: dict[str, tuple[float, float]] = {}
        if state.cost_range[1] == self.default_cost_range[1] and bounds.price.max > self.default_cost_range[1]:
            updates["cost_range"] = (bounds.price.min, bounds.price.max)
        if state.area_range[1] == self.default_area_range[1] and bounds.area.max > self.default_area_range[1]:
            updates["area_range"] = (bounds.area.min, bounds.area.max)
        return state.model_copy(update=updates) if updates else state

    # ---------- Views ----------

    def apply(
        self,
        items: Sequence[Listing],
        state: FilterState,
        *,
        bucket_by_date: bool = True,
        now: datetime | None = None,
    ) -> GroupedView:
        query = state.search_query.strip().lower()
        cost_lo, cost_hi = state.cost_range
        area_lo, area_hi = state.area_range

        kept: list[Listing] = []
        for item in items:
            if query and query not in (item.title or "").lower() and query not in (item.description or "").lower():
                continue
            if not self.matches_attributes(item, state):
                continue
            if not cost_lo <= listing_price_crores(item) <= cost_hi:
                continue
            if not area_lo <= listing_area_sqft(item) <= area_hi:
                continue
            kept.append(item)

        threshold = state.relevance_threshold
        meets = [i for i in kept if (i.relevance_score or 0.0) >= threshold]
        below = [i for i in kept if (i.relevance_score or 0.0) < threshold]

        now = now or datetime.now()
        return GroupedView(
            threshold=threshold,
            meets_threshold=self._group(meets, bucket_by_date, now),
            below_threshold=self._group(below, bucket_by_date, now),
        )

    @staticmethod
    def matches_attributes(item: Listing, state: FilterState) -> bool:
        """Location, agent/company and bedroom predicates. Blank criteria match everything."""
        location = state.location.strip().lower()
        if location and not _text_matches((item.location or "").lower(), location, state.exact_match):
            return False

        agent = state.agent.strip().lower()
        if agent and not any(
            _text_matches((name or "").lower(), agent, state.exact_match) for name in (item.agent_name, item.company_name)
        ):
            return False

        if state.bedrooms is not None:
            # Unknown or zero bedrooms never match a bedroom filter
            if not item.bedroom_count:
                return False
            if state.bedrooms == BEDROOMS_OR_MORE:
                return item.bedroom_count >= BEDROOMS_OR_MORE
            return item.bedroom_count == state.bedrooms
        return True

    @staticmethod
    def sort_by_relevance(items: Iterable[Listing]) -> list[Listing]:
        # sorted() is stable with reverse=True, so ties keep arrival order.
        return sorted(
            items,
            key=lambda i: i.relevance_score if i.relevance_score is not None else MISSING_SCORE_SORT_KEY,
            reverse=True,
        )

    @staticmethod
    def bucket(items: Iterable[Listing], *, now: datetime | None = None) -> DateBuckets:
        now = now or datetime.now()
        buckets: dict[str, list[Listing]] = {"today": [], "this_week": [], "this_month": [], "previous_months": []}
        for item in items:
            buckets[classify_posted_date(item.posted_date, now=now)].append(item)
        return DateBuckets(**buckets)

    def _group(self, items: list[Listing], bucket_by_date: bool, now: datetime) -> ListingGroup:
        ordered = self.sort_by_relevance(items)
        return ListingGroup(items=ordered, by_date=self.bucket(ordered, now=now) if bucket_by_date else None)
