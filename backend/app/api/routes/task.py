"""Task API routes: lifecycle, progress, metrics and histograms."""
from __future__ import annotations

from datetime import datetime
from time import perf_counter
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.progress import TaskMetrics, TaskProgress, TaskStatusHistogram
from app.api.schemas.task import TaskCreateRequest, TaskCreateResponse, TaskSummary
from app.api.serializers import serialize_histogram, serialize_metrics, serialize_progress, serialize_task
from app.db.deps import get_db
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services import histogram_service, partition_service, task_service
from app.services.errors import PartitionTrackerError
from app.services.metrics_cache import TaskMetricsCache, get_metrics_cache

router = APIRouter()


@router.get("/api/tasks", response_model=List[TaskSummary], tags=["tasks"])
def list_tasks(
    http_request: Request,
    type: Optional[str] = Query(default=None, description="Task type keyword or 'other'"),
    search: Optional[str] = Query(default=None, description="Substring of the task id"),
    created_by: Optional[str] = Query(default=None, description="Owner of at least one range"),
    skip: Optional[int] = Query(default=None),
    take: Optional[int] = Query(default=None),
    include_progress: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> List[TaskSummary]:
    """List tasks, most recently extended first."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/api/tasks",
        "type": type,
        "search": search,
        "created_by": created_by,
        "include_progress": include_progress,
        "request_id": request_id,
    }
    with trace("task.list", metadata=metadata, request_id=request_id):
        listings = task_service.list_tasks(
            db,
            type_=type,
            search=search,
            created_by=created_by,
            skip=skip,
            take=take,
            include_progress=include_progress,
        )

    log_metric("task.list.count", len(listings), metadata={"include_progress": include_progress})
    return [serialize_task(listing) for listing in listings]


@router.post("/api/tasks", response_model=TaskCreateResponse, status_code=status.HTTP_201_CREATED, tags=["tasks"])
def create_task(payload: TaskCreateRequest, http_request: Request, response: Response, db: Session = Depends(get_db)) -> TaskCreateResponse:
    request_id = getattr(http_request.state, "request_id", None)
    start = perf_counter()
    metadata = {
        "route": "/api/tasks",
        "task_id": payload.task_id,
        "ranges": len(payload.ranges),
        "request_id": request_id,
    }
    success = False
    try:
        with trace("task.create", metadata=metadata, task_id=payload.task_id, request_id=request_id):
            try:
                task_id = task_service.create_task(
                    db,
                    task_id=payload.task_id,
                    ranges=[(item.time_from, item.time_to) for item in payload.ranges],
                    description=payload.description,
                    created_by=payload.created_by,
                    partition_size_seconds=payload.partition_size_seconds,
                    partition_minutes=payload.partition_minutes,
                )
            except PartitionTrackerError as exc:
                raise to_http_exception(exc) from exc
            success = True
    finally:
        latency_ms = (perf_counter() - start) * 1000
        log_metric("task.create.success", 1 if success else 0, metadata={"task_id": payload.task_id})
        log_metric("task.create.latency_ms", latency_ms, metadata={"task_id": payload.task_id})

    response.headers["Location"] = f"/api/tasks/{task_id}"
    return TaskCreateResponse(task_id=task_id, request_id=request_id or "")


@router.get("/api/tasks/{task_id}", response_model=TaskSummary, tags=["tasks"])
def get_task(task_id: str, db: Session = Depends(get_db)) -> TaskSummary:
    try:
        task = task_service.get_task(db, task_id)
    except PartitionTrackerError as exc:
        raise to_http_exception(exc) from exc
    return serialize_task(task_service.TaskListing(task=task, type=task_service.task_type(task.task_id)))


@router.delete("/api/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["tasks"])
def delete_task(task_id: str, http_request: Request, db: Session = Depends(get_db)) -> Response:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("task.delete", metadata={"task_id": task_id, "request_id": request_id}, task_id=task_id, request_id=request_id):
        try:
            task_service.delete_task(db, task_id)
        except PartitionTrackerError as exc:
            raise to_http_exception(exc) from exc
    log_metric("task.delete.success", 1, metadata={"task_id": task_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/api/tasks/{task_id}/progress", response_model=TaskProgress, tags=["progress"])
def get_progress(task_id: str, db: Session = Depends(get_db)) -> TaskProgress:
    try:
        progress = partition_service.get_progress(db, task_id)
    except PartitionTrackerError as exc:
        raise to_http_exception(exc) from exc
    return serialize_progress(progress)


@router.get("/api/tasks/{task_id}/metrics", response_model=TaskMetrics, tags=["progress"])
def get_metrics(task_id: str, cache: TaskMetricsCache = Depends(get_metrics_cache)) -> TaskMetrics:
    """Throughput and ETA derived from the in-memory sample history."""
    return serialize_metrics(cache.get(task_id))


@router.get("/api/tasks/{task_id}/histogram", response_model=TaskStatusHistogram, tags=["progress"])
def get_histogram(
    task_id: str,
    http_request: Request,
    interval_seconds: Optional[int] = Query(default=None),
    from_: Optional[datetime] = Query(default=None, alias="from"),
    to: Optional[datetime] = Query(default=None),
    db: Session = Depends(get_db),
) -> TaskStatusHistogram:
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {
        "task_id": task_id,
        "interval_seconds": interval_seconds,
        "from": from_.isoformat() if from_ else None,
        "to": to.isoformat() if to else None,
        "request_id": request_id,
    }
    with trace("task.histogram", metadata=metadata, task_id=task_id, request_id=request_id) as span:
        try:
            histogram = histogram_service.get_histogram(db, task_id, interval_seconds, from_, to)
        except PartitionTrackerError as exc:
            raise to_http_exception(exc) from exc
        if span:
            try:
                span.update(metadata={**metadata, "buckets": len(histogram.buckets)})
            except Exception:  # pragma: no cover - tracing guard
                pass

    return serialize_histogram(histogram)
