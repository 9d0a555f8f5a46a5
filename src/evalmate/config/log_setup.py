"""Logging bootstrap for the service process."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the ``evalmate`` logger namespace.

    Safe to call repeatedly (tests build many apps); the handler is only added once.
    """
    root = logging.getLogger("evalmate")
    root.setLevel(level.upper())
    if any(getattr(handler, "_evalmate", False) for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._evalmate = True  # type: ignore[attr-defined]
    root.addHandler(handler)
