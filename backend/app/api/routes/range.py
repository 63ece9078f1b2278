"""Task time range routes."""
from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.range import RangeCreateRequest, TaskRange
from app.api.serializers import serialize_range
from app.db.deps import get_db
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services import range_service
from app.services.errors import PartitionTrackerError

router = APIRouter()


@router.get("/api/tasks/{task_id}/ranges", response_model=List[TaskRange], tags=["ranges"])
def list_ranges(task_id: str, db: Session = Depends(get_db)) -> List[TaskRange]:
    try:
        ranges = range_service.list_ranges(db, task_id)
    except PartitionTrackerError as exc:
        raise to_http_exception(exc) from exc
    return [serialize_range(item) for item in ranges]


@router.post(
    "/api/tasks/{task_id}/ranges",
    response_model=TaskRange,
    status_code=status.HTTP_201_CREATED,
    tags=["ranges"],
)
def add_range(
    task_id: str,
    payload: RangeCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskRange:
    """Append a range and generate its todo partitions."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {
        "task_id": task_id,
        "from": payload.time_from.isoformat(),
        "to": payload.time_to.isoformat(),
        "request_id": request_id,
    }
    with trace("range.add", metadata=metadata, task_id=task_id, request_id=request_id):
        try:
            range_entity = range_service.add_range(
                db,
                task_id,
                payload.time_from,
                payload.time_to,
                payload.created_by,
            )
        except PartitionTrackerError as exc:
            log_metric("range.add.success", 0, metadata={"task_id": task_id})
            raise to_http_exception(exc) from exc

    log_metric("range.add.success", 1, metadata={"task_id": task_id})
    return serialize_range(range_entity)


@router.delete("/api/tasks/{task_id}/ranges", status_code=status.HTTP_204_NO_CONTENT, tags=["ranges"])
def delete_range(
    task_id: str,
    http_request: Request,
    from_: datetime = Query(..., alias="from"),
    to: datetime = Query(...),
    delete: str = Query(default="all", description="partitions, range or all"),
    db: Session = Depends(get_db),
) -> Response:
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {
        "task_id": task_id,
        "from": from_.isoformat(),
        "to": to.isoformat(),
        "mode": delete,
        "request_id": request_id,
    }
    with trace("range.delete", metadata=metadata, task_id=task_id, request_id=request_id):
        try:
            range_service.delete_range(db, task_id, from_, to, delete)
        except PartitionTrackerError as exc:
            raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
