"""Schedule routes for recurring range generation."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.schemas.schedule import (
    ScheduleCreateRequest,
    ScheduleResponse,
    ScheduleRunResponse,
    ScheduleUpdateRequest,
)
from app.api.serializers import serialize_schedule
from app.db.deps import get_db
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services import schedule_service
from app.services.errors import PartitionTrackerError

router = APIRouter()


@router.get("/api/schedules", response_model=List[ScheduleResponse], tags=["schedules"])
def list_schedules(db: Session = Depends(get_db)) -> List[ScheduleResponse]:
    return [serialize_schedule(item) for item in schedule_service.list_schedules(db)]


@router.post(
    "/api/schedules",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["schedules"],
)
def create_schedule(payload: ScheduleCreateRequest, http_request: Request, db: Session = Depends(get_db)) -> ScheduleResponse:
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {
        "task_id": payload.task_id,
        "interval_seconds": payload.interval_seconds,
        "bulk_size_seconds": payload.bulk_size_seconds,
        "request_id": request_id,
    }
    with trace("schedule.create", metadata=metadata, task_id=payload.task_id, request_id=request_id):
        try:
            schedule = schedule_service.create_schedule(
                db,
                task_id=payload.task_id,
                interval_seconds=payload.interval_seconds,
                bulk_size_seconds=payload.bulk_size_seconds,
                first_execution_time=payload.first_execution_time,
                created_by=payload.created_by,
            )
        except PartitionTrackerError as exc:
            raise to_http_exception(exc) from exc
    return serialize_schedule(schedule)


@router.get("/api/schedules/task/{task_id}", response_model=List[ScheduleResponse], tags=["schedules"])
def list_schedules_for_task(task_id: str, db: Session = Depends(get_db)) -> List[ScheduleResponse]:
    return [serialize_schedule(item) for item in schedule_service.list_schedules_for_task(db, task_id)]


@router.post("/api/schedules/execute-due", response_model=ScheduleRunResponse, tags=["schedules"])
def execute_due(http_request: Request, db: Session = Depends(get_db)) -> ScheduleRunResponse:
    """Run due schedules now instead of waiting for the poller."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("schedule.execute_due", metadata={"request_id": request_id}, request_id=request_id):
        stats = schedule_service.execute_due_schedules(db)
    log_metric("schedule.execute_due.executed", stats.executed)
    return ScheduleRunResponse(
        schedules_due=stats.schedules_due,
        executed=stats.executed,
        disabled=stats.disabled,
        skipped=stats.skipped,
        failed=stats.failed,
        request_id=request_id or "",
    )


@router.get("/api/schedules/{schedule_id}", response_model=ScheduleResponse, tags=["schedules"])
def get_schedule(schedule_id: str, db: Session = Depends(get_db)) -> ScheduleResponse:
    try:
        schedule = schedule_service.get_schedule(db, schedule_id)
    except PartitionTrackerError as exc:
        raise to_http_exception(exc) from exc
    return serialize_schedule(schedule)


@router.patch("/api/schedules/{schedule_id}", response_model=ScheduleResponse, tags=["schedules"])
def update_schedule(schedule_id: str, payload: ScheduleUpdateRequest, db: Session = Depends(get_db)) -> ScheduleResponse:
    try:
        schedule = schedule_service.update_schedule(
            db,
            schedule_id,
            interval_seconds=payload.interval_seconds,
            bulk_size_seconds=payload.bulk_size_seconds,
            is_enabled=payload.is_enabled,
        )
    except PartitionTrackerError as exc:
        raise to_http_exception(exc) from exc
    return serialize_schedule(schedule)


@router.delete("/api/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["schedules"])
def delete_schedule(schedule_id: str, db: Session = Depends(get_db)) -> Response:
    try:
        schedule_service.delete_schedule(db, schedule_id)
    except PartitionTrackerError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
