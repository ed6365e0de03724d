# propsearch/core/fetch/source.py
from __future__ import annotations

from typing import Literal
from urllib.parse import urlparse

PropertySource = Literal["magicbricks", "squareyards", "unknown"]


def detect_source(url: str | None) -> PropertySource:
    """Identify the listing portal from a URL's hostname; anything unrecognised is 'unknown'."""
    if not url:
        return "unknown"
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return "unknown"
    if host.startswith("www."):
        host = host[4:]
    if host.endswith("magicbricks.com"):
        return "magicbricks"
    if host.endswith("squareyards.com"):
        return "squareyards"
    return "unknown"
