"""Lightweight metric emission."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("app.metrics")


def log_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Emit a metric as a structured log line (scraped by the log pipeline)."""
    if not logger.isEnabledFor(logging.INFO):
        return
    extras = " ".join(f"{key}={val}" for key, val in sorted((metadata or {}).items()) if val is not None)
    logger.info("metric %s=%s %s", name, value, extras)
