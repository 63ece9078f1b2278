"""Tracing helpers wrapping Opik traces."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from app.observability import client as opik_client

logger = logging.getLogger(__name__)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    task_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[Any]:
    """Record ``name`` as an Opik trace around the enclosed block.

    Yields the trace handle (supports ``update(metadata=...)``) or ``None`` when
    tracing is off. Tracing failures never affect the wrapped work.
    """
    client = opik_client.get_opik_client()
    handle = None
    if client is not None:
        tags = [tag for tag in (task_id and f"task:{task_id}", request_id and f"request:{request_id}") if tag]
        try:
            handle = client.trace(name=name, metadata=dict(metadata or {}), tags=tags or None)
        except Exception:
            logger.debug("Unable to start trace %s", name, exc_info=True)
            handle = None

    try:
        yield handle
    finally:
        if handle is not None:
            try:
                handle.end()
            except Exception:
                logger.debug("Unable to end trace %s", name, exc_info=True)
