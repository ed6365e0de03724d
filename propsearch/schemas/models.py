# propsearch/schemas/models.py

from __future__ import annotations

import math
import re
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

# =========================
# Listings
# =========================

_LEADING_INT_RE = re.compile(r"\d+")


def _is_number(v: Any) -> bool:
    return isinstance(v, int | float) and not isinstance(v, bool)


def _as_float(v: Any) -> float | None:
    """Finite float from a number or numeric string; None for anything else."""
    if isinstance(v, bool) or not isinstance(v, int | float | str):
        return None
    try:
        n = float(v)
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def _scalar_text(v: Any) -> str | None:
    if v is None or isinstance(v, str):
        return v
    if _is_number(v):
        return str(int(v)) if float(v).is_integer() else str(v)
    return None


class Listing(BaseModel):
    """
    One property listing as delivered by the backend.

    Sources disagree on shape (portal scrapes vs. broker-message extraction), so
    unknown attributes are kept verbatim. Only the stable key is mandatory:
    an odd value in any other attribute is coerced or blanked, never fatal.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str | None = None
    property_url: str | None = None
    url: str | None = None

    title: str | None = None
    description: str | None = None
    location: str | None = None
    agent_name: str | None = None
    company_name: str | None = None
    bedroom_count: int | None = Field(default=None, validation_alias=AliasChoices("bedroom_count", "bedrooms"))

    price: float | str | None = Field(default=None, description='Numeric rupees or display text such as "₹5.34 Cr".')
    price_text: str | None = None
    area: float | str | None = Field(default=None, description='Numeric sqft or display text such as "2,375 sqft".')
    carpet_area: str | None = None
    super_area: str | None = None
    area_sqft: float | None = None

    relevance_score: float | None = Field(default=None, description="Clamped to 0..10; unusable values become None.")
    relevance_reason: str | None = None
    matches: list[str] = Field(default_factory=list)
    mismatches: list[str] = Field(default_factory=list)

    posted_date: str | None = Field(default=None, description='Free text, e.g. "Posted: Yesterday" or "2 weeks ago".')

    @field_validator(
        "id",
        "property_url",
        "url",
        "title",
        "description",
        "location",
        "agent_name",
        "company_name",
        "price_text",
        "carpet_area",
        "super_area",
        "relevance_reason",
        "posted_date",
        mode="before",
    )
    @classmethod
    def _scalar_as_text(cls, v: Any) -> Any:
        return _scalar_text(v)

    @field_validator("price", "area", mode="before")
    @classmethod
    def _number_or_text(cls, v: Any) -> Any:
        if isinstance(v, str) or _is_number(v):
            return v
        return None

    @field_validator("area_sqft", mode="before")
    @classmethod
    def _non_negative_area(cls, v: Any) -> float | None:
        n = _as_float(v)
        return n if n is not None and n >= 0 else None

    @field_validator("bedroom_count", mode="before")
    @classmethod
    def _bedrooms(cls, v: Any) -> int | None:
        if isinstance(v, str):
            m = _LEADING_INT_RE.search(v)
            return int(m.group()) if m else None
        n = _as_float(v)
        return int(n) if n is not None and n >= 0 else None

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamped_score(cls, v: Any) -> float | None:
        n = _as_float(v)
        return None if n is None else min(max(n, 0.0), 10.0)

    @field_validator("matches", "mismatches", mode="before")
    @classmethod
    def _as_text_list(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [v] if v.strip() else []
        if isinstance(v, list | tuple):
            return [t for t in (_scalar_text(x) for x in v) if t]
        return []

    @model_validator(mode="after")
    def _require_key(self) -> Listing:
        if not (self.property_url or self.id or self.url):
            raise ValueError("listing has no stable key (property_url, id or url)")
        return self

    @property
    def key(self) -> str:
        return str(self.property_url or self.id or self.url)

    @property
    def price_display(self) -> float | str | None:
        return self.price if self.price is not None else self.price_text

    @property
    def area_display(self) -> float | str | None:
        for v in (self.area, self.carpet_area, self.super_area, self.area_sqft):
            if v not in (None, ""):
                return v
        return None

    def summary(self) -> str:
        bits: list[str] = [self.title or "(untitled)"]
        if self.price_display is not None:
            bits.append(str(self.price_display))
        if self.area_display is not None:
            bits.append(str(self.area_display))
        if self.relevance_score is not None:
            bits.append(f"score={self.relevance_score:g}")
        if self.posted_date:
            bits.append(self.posted_date)
        return " | ".join(bits)


# =========================
# Transport payloads
# =========================


class Batch(BaseModel):
    """One request/response unit fetched at (offset, limit)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    items: list[Listing] = Field(default_factory=list)
    offset: int = Field(0, ge=0)
    limit: int = Field(..., gt=0)
    total_count: int | None = Field(default=None, ge=0, description="Backend count hint; may be partial.")
    source: str | None = None
    api_calls_made: int | None = Field(default=None, ge=0)

    @property
    def exhausted(self) -> bool:
        """Fewer items than requested is the end-of-data signal."""
        return len(self.items) < self.limit


class StreamSummary(BaseModel):
    """Payload of the `complete` event that ends a listing stream."""

    model_config = ConfigDict(frozen=True, extra="allow")

    count: int = Field(0, ge=0)
    api_calls_made: int | None = Field(default=None, ge=0)
    source: str | None = None
    relevance_score: float | None = None
    relevance_reason: str | None = None


class ScrapeResult(BaseModel):
    """Non-streaming scrape of one portal URL (all properties at once)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    success: bool = True
    count: int = Field(0, ge=0)
    source: str | None = None
    scraped_at: str | None = None
    properties: list[Listing] = Field(default_factory=list)
    api_calls_made: int | None = Field(default=None, ge=0)
    relevance_score: float | None = None
    relevance_reason: str | None = None
    error: str | None = None


# =========================
# Sessions
# =========================

SessionMode = Literal["batch", "stream", "scrape"]


class SearchSession(BaseModel):
    """
    One logical search scope. Changing it discards accumulated state.

    batch  → (query, property_type, message_type)
    stream → target_url (+ orig_query for relevance scoring)
    scrape → target_url (+ orig_query), fetched in one response
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    mode: SessionMode
    query: str = ""
    property_type: str | None = None
    message_type: str | None = None
    target_url: str | None = None
    orig_query: str | None = None

    @model_validator(mode="after")
    def _target_for_url_modes(self) -> SearchSession:
        if self.mode != "batch" and not self.target_url:
            raise ValueError(f"{self.mode} sessions need a target_url")
        return self

    def describe(self) -> str:
        if self.mode == "batch":
            extra = ", ".join(f"{k}={v}" for k, v in (("type", self.property_type), ("msg", self.message_type)) if v)
            return f"batch:{self.query!r}" + (f" ({extra})" if extra else "")
        return f"{self.mode}:{self.target_url}"


# =========================
# Filters & grouping
# =========================

BEDROOMS_OR_MORE = 6

DateCategory = Literal["today", "this_week", "this_month", "previous_months"]


class RangeBounds(BaseModel):
    """Observed (or default) min/max of one numeric field."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float


class Bounds(BaseModel):
    """Slider bounds: price in crores, area in sqft."""

    model_config = ConfigDict(frozen=True)

    price: RangeBounds
    area: RangeBounds


class FilterState(BaseModel):
    """
    Caller-owned predicate configuration.

    location / agent match substrings, or whole values when `exact_match` is set;
    agent is checked against both agent_name and company_name. `bedrooms` of
    BEDROOMS_OR_MORE (6) means "6+".
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    search_query: str = ""
    cost_range: tuple[float, float] = Field((0.0, 10.0), description="Inclusive price range in crores.")
    area_range: tuple[float, float] = Field((0.0, 10000.0), description="Inclusive area range in sqft.")
    relevance_threshold: float = Field(5.0, ge=0, le=10)

    location: str = ""
    agent: str = ""
    bedrooms: int | None = Field(None, ge=1, description="Exact bedroom count; 6 means six or more.")
    exact_match: bool = False

    @field_validator("bedrooms", mode="before")
    @classmethod
    def _bedroom_choice(cls, v: Any) -> Any:
        # UI choices arrive as "", "3" or "6+"
        if isinstance(v, str):
            m = _LEADING_INT_RE.search(v)
            return int(m.group()) if m else None
        return v

    @field_validator("cost_range", "area_range")
    @classmethod
    def _ordered(cls, v: tuple[float, float]) -> tuple[float, float]:
        lo, hi = v
        if lo > hi:
            raise ValueError(f"range lower bound {lo} exceeds upper bound {hi}")
        return v

    @property
    def has_active_filters(self) -> bool:
        """True when any listing-attribute filter (location, agent, bedrooms, exact match) is set."""
        return bool(self.location.strip() or self.agent.strip() or self.bedrooms is not None or self.exact_match)


class DateBuckets(BaseModel):
    model_config = ConfigDict(frozen=True)

    today: list[Listing] = Field(default_factory=list)
    this_week: list[Listing] = Field(default_factory=list)
    this_month: list[Listing] = Field(default_factory=list)
    previous_months: list[Listing] = Field(default_factory=list)

    def get(self, category: DateCategory) -> list[Listing]:
        return list(getattr(self, category))


class ListingGroup(BaseModel):
    """Listings sorted by relevance (desc), optionally split by posting date."""

    model_config = ConfigDict(frozen=True)

    items: list[Listing] = Field(default_factory=list)
    by_date: DateBuckets | None = None

    def __len__(self) -> int:
        return len(self.items)


class GroupedView(BaseModel):
    """Filtered listings partitioned by the relevance threshold."""

    model_config = ConfigDict(frozen=True)

    threshold: float
    meets_threshold: ListingGroup = Field(default_factory=ListingGroup)
    below_threshold: ListingGroup = Field(default_factory=ListingGroup)

    @property
    def total(self) -> int:
        return len(self.meets_threshold) + len(self.below_threshold)


# =========================
# Controller state (UI boundary)
# =========================

ControllerStatus = Literal["idle", "loading", "ready", "empty", "error"]


class ControllerSnapshot(BaseModel):
    """
    Read-only view of a controller, handed to subscribers after every change.

    `status` keeps "empty" (search succeeded, nothing found) and "error"
    (search failed) apart; they need different user guidance.
    """

    model_config = ConfigDict(frozen=True)

    status: ControllerStatus
    session: SearchSession | None = None
    item_count: int = 0
    current_page: int = 1
    total_local_pages: int = 0
    has_next: bool = False
    has_previous: bool = False
    start_index: int = 0
    end_index: int = 0
    is_loading: bool = False
    is_loading_next_batch: bool = False
    is_complete: bool = False
    error: str | None = None
    error_kind: str | None = None
    source: str = "unknown"
    api_calls_made: int | None = None
    relevance_score: float | None = None
    relevance_reason: str | None = None
