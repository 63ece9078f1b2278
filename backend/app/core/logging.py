"""Process-wide logging setup."""
from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_handler: logging.Handler | None = None


def configure_logging(log_level: str = "INFO") -> None:
    """Install a single stderr handler on the root logger.

    Safe to call more than once: the handler installed by a previous call is
    replaced rather than stacked. Handlers added by others are left alone.
    """
    global _handler
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    root.addHandler(_handler)

    # APScheduler logs every job submission at INFO.
    logging.getLogger("apscheduler").setLevel(max(level, logging.WARNING))
    logging.captureWarnings(True)
