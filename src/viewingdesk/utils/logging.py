"""Logging helpers with consistent formatting.

All loggers live under the ``viewingdesk`` namespace and share one handler
installed on the package logger, so embedding applications can silence or
redirect the whole scheduler in one place.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from rich.logging import RichHandler

ROOT = "viewingdesk"
_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


def _level_from_env(default: int) -> int:
    name = (os.getenv("VIEWINGDESK_LOG_LEVEL") or "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def configure_logging(level: Optional[int] = None, *, rich: bool = True) -> logging.Logger:
    """Install the package handler once; later calls only adjust the level."""
    root = logging.getLogger(ROOT)
    resolved = level if level is not None else _level_from_env(logging.INFO)
    root.setLevel(resolved)
    if root.handlers:
        return root

    if rich:
        handler: logging.Handler = RichHandler(
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_path=False,
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    root.propagate = False
    return root


def get_logger(name: str, level: Optional[int] = None, *, rich: bool = True) -> logging.Logger:
    """Return ``viewingdesk.<name>``, configuring the package handler on first use."""
    root = logging.getLogger(ROOT)
    if not root.handlers:
        configure_logging(level, rich=rich)
    logger = root.getChild(name)
    if level is not None:
        logger.setLevel(level)
    return logger
