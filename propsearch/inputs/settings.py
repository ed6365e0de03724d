# propsearch/inputs/settings.py
"""
Settings loader for the property search client.

Goals
-----
- File-first settings with validation via Pydantic.
- Every field has a working default, so a missing file is not an error.
- Minimal environment-variable overrides for CI/CLI convenience.

JSON shape
----------
   {
     "api_base_url": "http://localhost:8000",
     "batch_size": 900,
     "page_size": 200,
     "trigger_page": 4,
     "request_timeout_s": 45,
     "endpoints": { "batch": "/api/whatsapp-listings/search/message" }
   }

Environment overrides (optional)
--------------------------------
- PROPSEARCH_API_URL            -> api_base_url
- PROPSEARCH_BATCH_SIZE         -> batch_size (int)
- PROPSEARCH_PAGE_SIZE          -> page_size (int)
- PROPSEARCH_TRIGGER_PAGE       -> trigger_page (int)
- PROPSEARCH_TIMEOUT_S          -> http_timeout_s (float)
- PROPSEARCH_REQUEST_TIMEOUT_S  -> request_timeout_s (float; "0"/"none" disables)
- PROPSEARCH_PROXY              -> proxy

Public API
----------
- class ClientSettings, EndpointPaths
- class SettingsLoader:
    - load(path: str | Path | None) -> ClientSettings
    - load_json(text: str) -> ClientSettings
    - with_overrides(cfg, **kwargs) -> ClientSettings (non-destructive copies)
- function load_settings(path: str | Path | None) -> ClientSettings (convenience)
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

# ----------------------------
# Pydantic models
# ----------------------------


class EndpointPaths(BaseModel):
    """Backend routes, relative to `api_base_url`."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    batch: str = "/api/whatsapp-listings/search/message"
    stream: str = "/api/get_listing_details_stream"
    stream_magicbricks: str = "/api/get_listing_details_stream_magicbricks"
    scrape: str = "/api/get_listing_details_batch"
    scrape_magicbricks: str = "/api/get_listing_details_batch_magicbricks"
    cache_reset: str = "/api/scraped_properties/by_url"


class ClientSettings(BaseModel):
    """Runtime options for the acquisition controller and its HTTP client."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    api_base_url: str = Field("http://localhost:8000", description="Backend root URL.")

    batch_size: int = Field(900, gt=0, description="Items requested per remote batch.")
    page_size: int = Field(200, gt=0, description="Items shown per local page.")
    trigger_page: int = Field(4, ge=1, description="Local page within a batch that prefetches the next batch.")

    http_timeout_s: float = Field(30.0, gt=0, description="httpx timeout for batch/scrape requests.")
    stream_read_timeout_s: float | None = Field(
        120.0,
        gt=0,
        description="Max idle seconds between stream events before the transport gives up; None waits forever.",
    )
    request_timeout_s: float | None = Field(
        None,
        gt=0,
        description="Hard ceiling for one batch/scrape request (lifecycle level). None imposes no limit.",
    )

    max_connections: int = Field(10, ge=1)
    max_keepalive_connections: int = Field(5, ge=0)
    retries: int = Field(2, ge=0, description="Transport-level connect retries.")
    proxy: str | None = None
    user_agent: str = "propsearch-client/0.1"

    scrape_batch_size: int = Field(10, gt=0, description="batch_size forwarded to the one-shot scrape endpoint.")
    relevance_threshold: float = Field(5.0, ge=0, le=10, description="Default split for 'most relevant'.")

    endpoints: EndpointPaths = Field(default_factory=EndpointPaths)

    @model_validator(mode="after")
    def _trigger_inside_batch(self) -> ClientSettings:
        if self.trigger_page > self.pages_per_batch:
            raise ValueError(
                f"trigger_page={self.trigger_page} is beyond the {self.pages_per_batch} local pages in one batch"
            )
        return self

    @property
    def pages_per_batch(self) -> int:
        return math.ceil(self.batch_size / self.page_size)

    def url_for(self, path: str) -> str:
        return self.api_base_url.rstrip("/") + "/" + path.lstrip("/")


# ----------------------------
# Loader
# ----------------------------


@dataclass(frozen=True)
class SettingsLoader:
    """
    File-first settings loader with light env overrides.

    Responsibilities:
        - Read JSON from a file or string
        - Validate with Pydantic
        - Apply environment overrides

    Default search (when path=None):
        1) ./propsearch.json
        2) ./config.json
        3) built-in defaults
    """

    env_prefix: str = "PROPSEARCH_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> ClientSettings:
        """
        Load settings from a JSON file (path). If path is None, try defaults.

        Args:
            path: Path to JSON file. If None, uses default search order.

        Returns:
            ClientSettings (validated).
        """
        p = self._resolve_path(path)
        raw = self._read_json_file(p) if p is not None else {}
        cfg = self._parse_root(raw)
        return self._apply_env_overrides(cfg)

    def load_json(self, text: str) -> ClientSettings:
        """Load settings from a JSON string."""
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON payload: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("Settings JSON must be an object.")
        cfg = self._parse_root(raw)
        return self._apply_env_overrides(cfg)

    def with_overrides(self, cfg: ClientSettings, **overrides: Any) -> ClientSettings:
        """
        Return a *new* ClientSettings with provided non-null overrides applied.
        Does not mutate the original instance; the result is re-validated.
        """
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return cfg
        return self._parse_root({**cfg.model_dump(), **updates})

    # ---------- Internals ----------

    def _resolve_path(self, path: str | Path | None) -> Path | None:
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise FileNotFoundError(f"Settings file not found: {p}")
            return p

        for candidate in (Path("propsearch.json"), Path("config.json")):
            if candidate.exists():
                return candidate
        return None

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported settings format for {p.name}; only .json is supported.")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {p}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Settings JSON in {p} must be an object.")
        return cast(dict[str, Any], data)

    def _parse_root(self, data: dict[str, Any]) -> ClientSettings:
        try:
            return ClientSettings.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Settings validation failed:\n{e}") from e

    def _apply_env_overrides(self, cfg: ClientSettings) -> ClientSettings:
        """
        Apply light, optional overrides from environment variables.
        Unparseable numbers are ignored and the validated value is kept.
        """
        prefix = self.env_prefix
        updates: dict[str, Any] = {}

        api_url = os.getenv(f"{prefix}API_URL")
        if api_url:
            updates["api_base_url"] = api_url.strip()

        for env_key, field, cast_fn in (
            ("BATCH_SIZE", "batch_size", int),
            ("PAGE_SIZE", "page_size", int),
            ("TRIGGER_PAGE", "trigger_page", int),
            ("TIMEOUT_S", "http_timeout_s", float),
        ):
            raw = os.getenv(f"{prefix}{env_key}")
            if raw:
                try:
                    updates[field] = cast_fn(raw)
                except ValueError:
                    pass

        req_timeout = os.getenv(f"{prefix}REQUEST_TIMEOUT_S")
        if req_timeout:
            if req_timeout.strip().lower() in {"0", "none", "off"}:
                updates["request_timeout_s"] = None
            else:
                try:
                    updates["request_timeout_s"] = float(req_timeout)
                except ValueError:
                    pass

        proxy = os.getenv(f"{prefix}PROXY")
        if proxy:
            updates["proxy"] = proxy.strip()

        if not updates:
            return cfg
        return self._parse_root({**cfg.model_dump(), **updates})


# ----------------------------
# Convenience function
# ----------------------------


def load_settings(path: str | Path | None = None) -> ClientSettings:
    """Convenience wrapper for one-shot callers."""
    return SettingsLoader().load(path)
