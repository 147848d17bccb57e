"""Console logging for the service.

Applies a root stdout handler so module loggers emit INFO-level records
without per-module setup, keeps uvicorn loggers visible and avoids duplicate
handlers on reloads.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig

_DICT_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "INFO", "handlers": ["console"]},
    "loggers": {
        "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "httpx": {"level": "WARNING"},
    },
}


def configure_logging() -> None:
    """Configure logging once; a root logger with handlers is left alone."""
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_DICT_CONFIG)
