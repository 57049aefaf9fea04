"""Centralized logging helpers."""

from __future__ import annotations

import logging
from typing import Final, Optional

_LOGGER_NAME: Final = "embedcache"
_HANDLER_NAME: Final = "embedcache-console"


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Return a namespaced logger. Level and output are left to the application."""
    name = f"{_LOGGER_NAME}.{component}" if component else _LOGGER_NAME
    root = logging.getLogger(_LOGGER_NAME)
    if not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """Route package logs to the current stderr at ``level``.

    Repeated calls replace the console handler rather than stacking another.
    """
    root = get_logger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(level)
    return root
