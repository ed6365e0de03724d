# propsearch/core/filters/parsing.py
"""
Numbers out of listing display text.

extract_price returns rupees ("₹5.34 Cr" → 53_400_000), extract_area returns
sqft. Unparseable input yields 0.
"""

from __future__ import annotations

import math
import re
from typing import Any

RUPEES_PER_CRORE = 10_000_000
RUPEES_PER_LAKH = 100_000

# ----------------------------
# Price text: "₹5.34 Cr", "Rs 85 Lakh", "45 L", "1,25,00,000"
# ----------------------------
_PRICE_NOISE_RE = re.compile(r"[₹,\s ]")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_CRORE_UNIT_RE = re.compile(r"^\.?cr")
_LAKH_UNIT_RE = re.compile(r"^\.?(?:lakh|lac|l)")

# ----------------------------
# Area text: "2,375 sqft", "1200 Sq.Ft. carpet"
# ----------------------------
_AREA_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        f = float(value)
        return f if math.isfinite(f) else 0.0
    return None


def extract_price(value: Any) -> float:
    """
    Price in rupees from a number or display text.

    The unit suffix directly after the first number scales it (crore ×1e7,
    lakh ×1e5); plain digits are rupees. Anything without digits is 0.
    """
    num = _as_number(value)
    if num is not None:
        return num
    if value is None:
        return 0.0

    text = _PRICE_NOISE_RE.sub("", str(value).lower())
    m = _NUMBER_RE.search(text)
    if not m:
        return 0.0

    amount = float(m.group())
    unit = text[m.end() :]
    if _CRORE_UNIT_RE.match(unit):
        amount *= RUPEES_PER_CRORE
    elif _LAKH_UNIT_RE.match(unit):
        amount *= RUPEES_PER_LAKH
    return round(amount, 2)


def extract_area(value: Any) -> float:
    """Area in sqft: the first digit group of the text (thousands commas allowed)."""
    num = _as_number(value)
    if num is not None:
        return num
    if value is None:
        return 0.0

    m = _AREA_RE.search(str(value))
    if not m:
        return 0.0
    return float(m.group().replace(",", ""))


def price_in_crores(value: Any) -> float:
    return extract_price(value) / RUPEES_PER_CRORE
