# tests/unit/test_listing_model.py
from __future__ import annotations

import pytest
from pydantic import ValidationError

from propsearch.schemas.models import FilterState, Listing
from tests.utils import listing_payload


def _listing(**overrides) -> Listing:
    return Listing.model_validate(listing_payload(0, **overrides))


def test_key_is_the_only_mandatory_attribute() -> None:
    with pytest.raises(ValidationError):
        Listing.model_validate({"title": "no key"})
    assert Listing.model_validate({"id": 42}).key == "42"
    assert Listing.model_validate({"url": "https://portal.test/x"}).key == "https://portal.test/x"


@pytest.mark.parametrize(
    "raw,expected",
    [(7, 7.0), ("8.5", 8.5), (10.5, 10.0), (-2, 0.0), ("high", None), (float("nan"), None), (True, None), (None, None)],
)
def test_relevance_score_is_clamped_or_blanked(raw, expected) -> None:
    assert _listing(relevance_score=raw).relevance_score == expected


def test_scalar_text_fields_are_coerced() -> None:
    item = _listing(title=1234, description=5.5, posted_date={"when": "today"})
    assert item.title == "1234"
    assert item.description == "5.5"
    assert item.posted_date is None


@pytest.mark.parametrize(
    "raw,expected",
    [("location", ["location"]), ("", []), (None, []), (["a", None, 3, ""], ["a", "3"]), ({"a": 1}, [])],
)
def test_match_lists_accept_loose_shapes(raw, expected) -> None:
    item = _listing(matches=raw, mismatches=raw)
    assert item.matches == expected
    assert item.mismatches == expected


def test_numeric_attributes_degrade_to_none() -> None:
    assert _listing(area_sqft=-50).area_sqft is None
    assert _listing(area_sqft="n/a").area_sqft is None
    assert _listing(area_sqft="1200").area_sqft == 1200.0
    assert _listing(price={"amount": 1}).price is None
    assert _listing(price=12_500_000).price == 12_500_000


def test_broker_fields_and_bedroom_aliases() -> None:
    item = _listing(location="Bandra West", agent_name="R. Shah", company_name="Shah Realty", bedrooms="3 BHK")
    assert (item.location, item.agent_name, item.company_name) == ("Bandra West", "R. Shah", "Shah Realty")
    assert item.bedroom_count == 3
    assert _listing(bedroom_count=4.0).bedroom_count == 4
    assert _listing(bedroom_count="studio").bedroom_count is None


def test_filter_state_bedroom_choices_and_active_flag() -> None:
    assert FilterState(bedrooms="6+").bedrooms == 6
    assert FilterState(bedrooms="").bedrooms is None
    assert not FilterState().has_active_filters
    assert not FilterState(location="   ").has_active_filters
    assert FilterState(location="bandra").has_active_filters
    assert FilterState(bedrooms=2).has_active_filters
    assert FilterState(exact_match=True).has_active_filters
    # Text search and ranges are not listing-attribute filters
    assert not FilterState(search_query="sea", cost_range=(1, 2)).has_active_filters
