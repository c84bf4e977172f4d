"""Central logging configuration for the fieldwork service.

One stdout handler on the root logger serves every module logger, so modules
only call `logging.getLogger(__name__)`. The SQL store binding is held at
WARNING. Calling `configure_logging()` again only adjusts levels.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

DEFAULT_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"

# Loggers whose level is pinned independently of the configured level
QUIET_LOGGERS = {
    "fieldwork.logic.repository_documents": "WARNING",
}


def build_logging_config(level: str = DEFAULT_LEVEL) -> Dict[str, Any]:
    level = level.upper()
    uvicorn = {"level": level, "handlers": ["console"], "propagate": False}
    loggers: Dict[str, Any] = {
        "uvicorn": dict(uvicorn),
        "uvicorn.error": dict(uvicorn),
        "uvicorn.access": dict(uvicorn),
        "fieldwork": {"level": level},
    }
    loggers.update({name: {"level": pinned} for name, pinned in QUIET_LOGGERS.items()})
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": loggers,
    }


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once; later calls only change levels."""
    root = logging.getLogger()
    if root.handlers:
        if level:
            root.setLevel(level.upper())
            logging.getLogger("fieldwork").setLevel(level.upper())
        return
    dictConfig(build_logging_config(level or DEFAULT_LEVEL))


__all__ = ["build_logging_config", "configure_logging"]
