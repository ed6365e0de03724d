# propsearch/core/filters/dates.py
"""
Heuristic bucketing of free-text posting dates.

Portals publish relative phrases ("2 hours ago", "Yesterday", "3 days ago",
"2 weeks ago") or absolute ones ("Posted: 12 October"). The classifier is a
pure function of (text, now); anything it cannot place lands in
`previous_months`.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from propsearch.schemas.models import DateCategory

logger = logging.getLogger(__name__)

DATE_CATEGORIES: tuple[DateCategory, ...] = ("today", "this_week", "this_month", "previous_months")

# Locale-independent on purpose: portal text is English.
_MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)  # fmt: skip

_DAYS_AGO_RE = re.compile(r"(\d+)\s*days?\s+ago")
_WEEKS_AGO_RE = re.compile(r"(\d+)\s*weeks?\s+ago")
_KNOWN_PHRASE_RE = re.compile(
    r"\d+\s*(?:min(?:ute)?s?|hours?|days?|weeks?|months?|years?)\s+ago|just now|today|yesterday|"
    + "|".join(_MONTH_NAMES)
)


def classify_posted_date(text: str | None, *, now: datetime | None = None) -> DateCategory:
    """
    Rules, first match wins:
      - mentions minutes, hours, "just now" or "today"         → today
      - "yesterday", or "N days ago" with N ≤ 7                  → this_week
      - names the current month                                   → this_month
      - "N weeks ago" landing in the current month                → this_month
      - otherwise                                                 → previous_months
    """
    s = (text or "").strip().lower()
    now = now or datetime.now()

    if "hour" in s or "today" in s or "just now" in s or re.search(r"\d+\s*min", s):
        return "today"

    if "yesterday" in s:
        return "this_week"

    m = _DAYS_AGO_RE.search(s)
    if m and int(m.group(1)) <= 7:
        return "this_week"

    if _MONTH_NAMES[now.month - 1] in s:
        return "this_month"

    m = _WEEKS_AGO_RE.search(s)
    if m:
        estimated = now - timedelta(weeks=int(m.group(1)))
        if (estimated.year, estimated.month) == (now.year, now.month):
            return "this_month"

    if s and not _KNOWN_PHRASE_RE.search(s):
        logger.debug("unrecognised posted date %r; bucketed as previous_months", text)
    return "previous_months"
