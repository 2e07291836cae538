"""Logging setup shared by the API process and its housekeeping threads."""

from __future__ import annotations

import logging
import os
from logging.config import dictConfig

_BRIDGE_LOGGERS = (
    "tenant_bridge.auth.guards",
    "tenant_bridge.auth.tokens",
    "tenant_bridge.auth.sessions",
    "tenant_bridge.housekeeping",
)


def configure_logging() -> None:
    """Install console logging for the bridge, its background sweepers and uvicorn."""
    level = os.getenv("BRIDGE_LOG_LEVEL", "INFO").upper()
    guard_level = os.getenv("BRIDGE_GUARD_LOG_LEVEL", level).upper()

    loggers = {
        name: {"level": guard_level if name.endswith(".guards") else level}
        for name in _BRIDGE_LOGGERS
    }
    for name in ("uvicorn", "uvicorn.error"):
        loggers[name] = {"handlers": ["console"], "level": level, "propagate": False}
    loggers["uvicorn.access"] = {
        "handlers": ["console"],
        "level": os.getenv("UVICORN_ACCESS_LOG_LEVEL", "INFO").upper(),
        "propagate": False,
    }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                # Sweeper output comes from named daemon threads.
                "bridge": {"format": "%(asctime)s %(levelname)s [%(name)s] (%(threadName)s) %(message)s"},
            },
            "handlers": {
                "console": {"class": "logging.StreamHandler", "formatter": "bridge", "level": level},
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": loggers,
        }
    )
    logging.getLogger(__name__).debug("Logging configured (bridge=%s, guards=%s)", level, guard_level)
