# propsearch/core/acquire/lifecycle.py
"""
Single-flight request supervision.

Each controller owns one RequestLifecycleManager. Issuing a request cancels
the one before it, so exactly one request is "current" at any time. Requests
resolve to a tagged outcome instead of raising:

  Completed(payload)  – finished while still current
  Aborted()           – superseded, torn down, or finished after its token was cancelled
  Failed(error)       – transport/parse failure (typed SearchClientError)

Loading state is derived from the current token, so a superseded request that
settles late never clears the indicator of the request that replaced it.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from propsearch.core.fetch.errors import Cancelled, SearchClientError, TransportError, classify_client_error

logger = logging.getLogger(__name__)

RequestKind = Literal["foreground", "background"]

_seq = itertools.count(1)


@dataclass(eq=False)
class CancelToken:
    """Cooperative cancellation flag bound to the asyncio task running one request."""

    kind: RequestKind = "foreground"
    label: str = ""
    seq: int = field(default_factory=lambda: next(_seq))
    _cancelled: bool = field(default=False, repr=False)
    _task: asyncio.Future[Any] | None = field(default=None, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def bind(self, task: asyncio.Future[Any]) -> None:
        self._task = task
        if self._cancelled:
            task.cancel()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise Cancelled(f"request #{self.seq} ({self.label or self.kind}) was cancelled")


@dataclass(frozen=True)
class Completed:
    payload: Any


@dataclass(frozen=True)
class Aborted:
    reason: str = "superseded"


@dataclass(frozen=True)
class Failed:
    error: SearchClientError


Outcome = Completed | Aborted | Failed

RequestFn = Callable[[CancelToken], Awaitable[Any]]


class RequestLifecycleManager:
    """Tracks the one in-flight request of a controller instance."""

    def __init__(
        self,
        *,
        timeout_s: float | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._on_change = on_change
        self._active: CancelToken | None = None

    # ---------- State ----------

    @property
    def active(self) -> CancelToken | None:
        return self._active

    @property
    def busy(self) -> bool:
        return self._active is not None

    @property
    def is_loading(self) -> bool:
        return self._active is not None and self._active.kind == "foreground"

    @property
    def is_loading_background(self) -> bool:
        return self._active is not None and self._active.kind == "background"

    # ---------- Operations ----------

    async def issue(
        self,
        request_fn: RequestFn,
        *,
        kind: RequestKind = "foreground",
        label: str = "",
        timeout_s: float | None = None,
    ) -> Outcome:
        """
        Run `request_fn(token)` as the current request and return its outcome.

        Never raises for request failures. Re-raises CancelledError only when the
        *caller's* task is cancelled from outside (not via a token).
        """
        previous = self._active
        if previous is not None:
            logger.debug("request #%d (%s) superseded", previous.seq, previous.label or previous.kind)
            previous.cancel()

        token = CancelToken(kind=kind, label=label)
        self._active = token
        self._changed()

        limit = timeout_s if timeout_s is not None else self._timeout_s
        task = asyncio.ensure_future(self._run(request_fn, token, limit))
        token.bind(task)
        logger.debug("request #%d (%s) issued", token.seq, label or kind)

        outcome: Outcome
        try:
            payload = await task
        except asyncio.CancelledError:
            if not token.cancelled:
                # The caller itself was cancelled; tear the request down with it.
                token.cancel()
                self._settle(token)
                raise
            outcome = Aborted()
        except Cancelled:
            outcome = Aborted()
        except (TimeoutError, asyncio.TimeoutError):
            outcome = Aborted() if token.cancelled else Failed(TransportError(f"Request timed out after {limit:g}s"))
        except Exception as exc:  # noqa: BLE001
            outcome = Aborted() if token.cancelled else Failed(classify_client_error(exc))
        else:
            outcome = Aborted() if token.cancelled else Completed(payload)

        self._settle(token)
        logger.debug("request #%d (%s) → %s", token.seq, label or kind, type(outcome).__name__)
        return outcome

    def cancel(self, reason: str = "teardown") -> bool:
        """Cancel the current request unconditionally. Returns True if one was active."""
        token = self._active
        if token is None:
            return False
        logger.debug("request #%d (%s) cancelled: %s", token.seq, token.label or token.kind, reason)
        token.cancel()
        self._active = None
        self._changed()
        return True

    # ---------- Internals ----------

    @staticmethod
    async def _run(request_fn: RequestFn, token: CancelToken, timeout_s: float | None) -> Any:
        if timeout_s is None:
            return await request_fn(token)
        return await asyncio.wait_for(request_fn(token), timeout_s)

    def _settle(self, token: CancelToken) -> None:
        if self._active is token:
            self._active = None
            self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
