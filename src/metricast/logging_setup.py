"""Idempotent stderr logging setup shared by the CLI and the web server."""

from __future__ import annotations

import logging
import sys

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# uvicorn loggers that should write through the same handler as metricast.
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error")


def setup_logging(level: int = logging.INFO, *, include_server: bool = True) -> None:
    """Configure metricast (and optionally uvicorn) logging to stderr.

    Safe to call multiple times; only the first call has an effect.
    """
    global _CONFIGURED  # noqa: PLW0603
    if _CONFIGURED:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    names = ("metricast", *_SERVER_LOGGERS) if include_server else ("metricast",)
    for name in names:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        logger.addHandler(handler)
        logger.propagate = False

    _CONFIGURED = True
