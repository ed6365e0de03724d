# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import FakeDataSource, make_listing
"""

from .utils import FakeDataSource, make_listing, make_listings, make_settings

__all__ = ["FakeDataSource", "make_listing", "make_listings", "make_settings"]
