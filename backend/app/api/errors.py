"""Translate service errors into HTTP responses."""
from __future__ import annotations

from fastapi import HTTPException, status

from app.services.errors import ConflictError, NotFoundError, PartitionTrackerError


def to_http_exception(exc: PartitionTrackerError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
