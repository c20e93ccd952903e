"""logger.py - Logger factory for nestset modules."""

import logging

from .config import LOG_LEVEL

_ROOT = "nestset"

_root_logger = logging.getLogger(_ROOT)
_root_logger.addHandler(logging.NullHandler())
if LOG_LEVEL:
    _root_logger.setLevel(LOG_LEVEL.upper())


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the `nestset` namespace."""
    if name != _ROOT and not name.startswith(_ROOT + "."):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)
