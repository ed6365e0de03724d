# propsearch/core/debug_log.py
"""
Logging setup for the CLI and embedding applications.

Library modules only call `logging.getLogger(__name__)`; nothing is configured
at import time. `configure_logging()` attaches a console handler to the
`propsearch` logger and, when PROPSEARCH_DEBUG is truthy, a rotating debug
file under ./logs.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

_ROOT = "propsearch"
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def debug_enabled() -> bool:
    return os.getenv("PROPSEARCH_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(level: int | None = None, *, log_dir: str = "logs") -> logging.Logger:
    """Create/reuse handlers on the package logger. Safe to call repeatedly."""
    logger = logging.getLogger(_ROOT)
    debug = debug_enabled()
    logger.setLevel(level if level is not None else (logging.DEBUG if debug else logging.INFO))

    # Avoid duplicate handlers if reloaded in REPL/tests
    if any(getattr(h, "_propsearch", False) for h in logger.handlers):
        return logger

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    console._propsearch = True  # type: ignore[attr-defined]
    logger.addHandler(console)

    if debug:
        try:
            os.makedirs(log_dir, exist_ok=True)
            handler = RotatingFileHandler(
                os.path.join(log_dir, "propsearch_debug.log"),
                maxBytes=1_000_000,
                backupCount=3,
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("debug log file disabled: %s", exc)
        else:
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter(_FORMAT, datefmt="(%Y-%m-%d %H:%M:%S)"))
            handler._propsearch = True  # type: ignore[attr-defined]
            logger.addHandler(handler)

    return logger
