"""Logging utilities for the fx_resolver package."""

from __future__ import annotations

import logging
import os
from typing import Optional

_CONFIGURED: Optional[bool] = None
LOG_LEVEL_ENV = "FX_RESOLVER_LOG_LEVEL"


def get_logger(name: str = "fx_resolver") -> logging.Logger:
    """Return a logger, configuring the root handler on first use.

    The level defaults to INFO and can be overridden through the
    ``FX_RESOLVER_LOG_LEVEL`` environment variable (``DEBUG``, ``WARNING`` ...).
    """
    global _CONFIGURED
    if _CONFIGURED is None:
        level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level_name, logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        _CONFIGURED = True
    return logging.getLogger(name)
