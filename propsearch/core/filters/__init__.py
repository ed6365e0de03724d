# propsearch/core/filters/__init__.py
from .dates import DATE_CATEGORIES, classify_posted_date
from .engine import (
    AREA_ROUNDING_FACTOR,
    DEFAULT_MAX_AREA_SQFT,
    DEFAULT_MAX_COST_CRORES,
    FilterGroupEngine,
    listing_area_sqft,
    listing_price_crores,
)
from .parsing import RUPEES_PER_CRORE, RUPEES_PER_LAKH, extract_area, extract_price, price_in_crores

__all__ = [
    "FilterGroupEngine",
    "classify_posted_date",
    "DATE_CATEGORIES",
    "extract_price",
    "extract_area",
    "price_in_crores",
    "listing_price_crores",
    "listing_area_sqft",
    "RUPEES_PER_CRORE",
    "RUPEES_PER_LAKH",
    "DEFAULT_MAX_COST_CRORES",
    "DEFAULT_MAX_AREA_SQFT",
    "AREA_ROUNDING_FACTOR",
]
