"""Logging setup for the wellcoach service.

Usage:
    from wellcoach.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Meals index created")
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Dict, Optional

_CONFIGURED = False


def _logging_config(level: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
            },
        },
        "loggers": {
            "wellcoach": {
                "handlers": ["console"],
                "level": level,
                "propagate": True,
            },
        },
    }


def setup_logging(level: Optional[str] = None, force: bool = False) -> None:
    """Configure the ``wellcoach`` logger tree once. Safe to call repeatedly."""
    global _CONFIGURED
    if _CONFIGURED and not force:
        return
    if level is None:
        from .config import get_settings

        level = get_settings().log_level
    logging.config.dictConfig(_logging_config(level.upper()))
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
