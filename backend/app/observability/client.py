"""Opik client bootstrap."""
from __future__ import annotations

import logging
import threading

import opik

from app.core.config import settings

logger = logging.getLogger(__name__)

_client: opik.Opik | None = None
_lock = threading.Lock()


def init_opik() -> None:
    """Create the shared Opik client when tracing is enabled."""
    global _client
    if not settings.opik_enabled:
        logger.info("Opik tracing disabled")
        return
    with _lock:
        if _client is not None:
            return
        try:
            _client = opik.Opik(project_name=settings.opik_project, api_key=settings.opik_api_key)
        except Exception:
            logger.exception("Failed to initialise Opik client; tracing disabled")
            _client = None
            return
    logger.info("Opik tracing enabled (project=%s)", settings.opik_project)


def get_opik_client() -> opik.Opik | None:
    if not settings.opik_enabled:
        return None
    return _client


def flush_opik() -> None:
    client = get_opik_client()
    if client is None:
        return
    try:
        client.flush()
    except Exception:  # pragma: no cover - network guard
        logger.warning("Opik flush failed", exc_info=True)
