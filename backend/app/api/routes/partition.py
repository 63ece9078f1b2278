"""Partition routes: listing, clearing and the claim endpoint workers poll."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.partition import ClaimedPartition, PartitionPayload
from app.core.timeutil import as_utc
from app.db.deps import get_db
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services import partition_service
from app.services.errors import PartitionTrackerError

router = APIRouter()


@router.get("/api/tasks/{task_id}/partitions", response_model=List[PartitionPayload], tags=["partitions"])
def list_partitions(
    task_id: str,
    skip: Optional[int] = Query(default=None),
    take: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
) -> List[PartitionPayload]:
    try:
        partitions = partition_service.list_partitions(db, task_id, skip, take)
    except PartitionTrackerError as exc:
        raise to_http_exception(exc) from exc
    return [
        PartitionPayload(
            task_id=item.task_id,
            range_id=item.range_id,
            time_from=as_utc(item.time_from),
            time_to=as_utc(item.time_to),
            status=item.status,
        )
        for item in partitions
    ]


@router.delete("/api/tasks/{task_id}/partitions", status_code=status.HTTP_204_NO_CONTENT, tags=["partitions"])
def clear_partitions(task_id: str, http_request: Request, db: Session = Depends(get_db)) -> Response:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("partition.clear", metadata={"task_id": task_id, "request_id": request_id}, task_id=task_id, request_id=request_id):
        try:
            removed = partition_service.clear_partitions(db, task_id)
        except PartitionTrackerError as exc:
            raise to_http_exception(exc) from exc
    log_metric("partition.clear.removed", removed, metadata={"task_id": task_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/api/tasks/{task_id}/partitions/claim",
    response_model=ClaimedPartition,
    responses={204: {"description": "No partition left to claim"}},
    tags=["partitions"],
)
def claim_partition(task_id: str, http_request: Request, db: Session = Depends(get_db)):
    """Atomically move the earliest todo partition to in-progress.

    Returns 204 when the task has nothing left to hand out.
    """
    request_id = getattr(http_request.state, "request_id", None)
    with trace("partition.claim", metadata={"task_id": task_id, "request_id": request_id}, task_id=task_id, request_id=request_id):
        try:
            claimed = partition_service.claim_next_partition(db, task_id)
        except PartitionTrackerError as exc:
            raise to_http_exception(exc) from exc

    log_metric("partition.claim.success", 1 if claimed else 0, metadata={"task_id": task_id})
    if claimed is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return ClaimedPartition(
        task_id=claimed.task_id,
        range_id=claimed.range_id,
        time_from=as_utc(claimed.time_from),
        time_to=as_utc(claimed.time_to),
        status=claimed.status,
        request_id=request_id or "",
    )
