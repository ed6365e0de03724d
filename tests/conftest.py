# tests/conftest.py
from __future__ import annotations

import os

import pytest

from propsearch.inputs.settings import ClientSettings
from propsearch.schemas.models import Listing
from tests.utils import FakeDataSource, make_listings, make_settings


# -------- Hermetic environment --------
@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Settings read PROPSEARCH_* overrides; tests must not inherit the developer's shell."""
    for key in list(os.environ):
        if key.startswith("PROPSEARCH_"):
            monkeypatch.delenv(key, raising=False)
    yield


# -------- Settings --------
@pytest.fixture
def settings() -> ClientSettings:
    return make_settings()


# -------- Backends --------
@pytest.fixture
def fake_source():
    """Factory: FakeDataSource with a catalog of {query: item_count}."""

    def _factory(**catalog: int) -> FakeDataSource:
        return FakeDataSource(catalog=dict(catalog))

    return _factory


# -------- Listings --------
@pytest.fixture
def sample_listings() -> list[Listing]:
    return make_listings(5)
