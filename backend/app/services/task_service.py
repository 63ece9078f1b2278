"""Task lifecycle: creation with initial ranges, listing and cascading delete."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import and_, delete, desc, func, not_, nulls_last, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.timeutil import as_utc, utcnow
from app.db.models.task import Task
from app.db.models.task_time_range import TaskTimeRange
from app.services import partition_service, partition_store, range_service
from app.services.errors import ConflictError, NotFoundError, ValidationError
from app.services.metrics_cache import get_metrics_cache
from app.services.partition_slicer import validate_range, validate_slice_size
from app.services.task_status import ProgressSnapshot

logger = logging.getLogger(__name__)


@dataclass
class TaskListing:
    task: Task
    type: str
    progress: Optional[ProgressSnapshot] = None


def task_type(task_id: str) -> str:
    """First configured keyword contained in the id, else ``other``."""
    normalized = (task_id or "").lower()
    for keyword in settings.task_type_keywords:
        if keyword.lower() in normalized:
            return keyword.lower()
    return "other"


def _type_filter(normalized_type: str):
    keywords = [keyword.lower() for keyword in settings.task_type_keywords]
    lowered_id = func.lower(Task.task_id)
    if normalized_type in keywords:
        # Earlier keywords win in task_type(), so exclude ids they would claim.
        earlier = keywords[: keywords.index(normalized_type)]
        return and_(lowered_id.contains(normalized_type), *[not_(lowered_id.contains(k)) for k in earlier])
    if normalized_type == "other" and keywords:
        return and_(*[not_(lowered_id.contains(k)) for k in keywords])
    return None


def list_tasks(
    db: Session,
    *,
    type_: Optional[str] = None,
    search: Optional[str] = None,
    created_by: Optional[str] = None,
    skip: Optional[int] = None,
    take: Optional[int] = None,
    include_progress: bool = False,
) -> List[TaskListing]:
    safe_skip, safe_take = partition_service.clamp_page(skip, take)
    latest_range = (
        select(func.max(TaskTimeRange.creation_time))
        .where(TaskTimeRange.task_id == Task.task_id)
        .correlate(Task)
        .scalar_subquery()
    )
    query = select(Task)

    if search and search.strip():
        query = query.where(Task.task_id.contains(search.strip()))
    if type_ and type_.strip():
        condition = _type_filter(type_.strip().lower())
        if condition is not None:
            query = query.where(condition)
    if created_by and created_by.strip():
        owner = created_by.strip()
        query = query.where(
            select(TaskTimeRange.range_id)
            .where(TaskTimeRange.task_id == Task.task_id, TaskTimeRange.created_by == owner)
            .correlate(Task)
            .exists()
        )

    tasks = list(
        db.scalars(
            query.order_by(nulls_last(desc(latest_range)), desc(Task.last_update)).offset(safe_skip).limit(safe_take)
        )
    )
    listings = [TaskListing(task=task, type=task_type(task.task_id)) for task in tasks]
    if include_progress and tasks:
        progress = partition_service.compute_progress_map(db, tasks)
        for listing in listings:
            listing.progress = progress.get(listing.task.task_id)
    return listings


def get_task(db: Session, task_id: str) -> Task:
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Task '{task_id}' not found")
    return task


def _resolve_requested_size(partition_size_seconds: Optional[int], partition_minutes: Optional[int]) -> int:
    if partition_size_seconds is not None:
        return partition_size_seconds
    if partition_minutes is not None:
        return partition_minutes * 60
    return settings.default_partition_seconds


def create_task(
    db: Session,
    *,
    task_id: str,
    ranges: Sequence[Tuple[datetime, datetime]],
    description: Optional[str] = None,
    created_by: Optional[str] = None,
    partition_size_seconds: Optional[int] = None,
    partition_minutes: Optional[int] = None,
    now: datetime | None = None,
) -> str:
    """Create a task with its ranges and partitions in one transaction."""
    task_id = (task_id or "").strip()
    if not task_id:
        raise ValidationError("task_id is required")
    if not ranges:
        raise ValidationError("At least one time range is required")

    size = _resolve_requested_size(partition_size_seconds, partition_minutes)
    validate_slice_size(size)
    normalized_ranges = [(as_utc(start), as_utc(end)) for start, end in ranges]
    for start, end in normalized_ranges:
        validate_range(start, end)

    if db.get(Task, task_id) is not None:
        raise ConflictError(f"Task '{task_id}' already exists")

    now = now or utcnow()
    owner = (created_by or "").strip()
    task = Task(
        task_id=task_id,
        description=description or "",
        created_by=owner,
        last_update=now,
        partition_size_seconds=size,
    )
    total_partitions = 0
    try:
        db.add(task)
        db.flush()
        for start, end in normalized_ranges:
            _, inserted = range_service.create_range_with_partitions(db, task, start, end, owner, now)
            total_partitions += inserted
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Task or ranges conflict with existing data") from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Task created task=%s ranges=%s partitions=%s partition_size_seconds=%s",
        task_id,
        len(normalized_ranges),
        total_partitions,
        size,
    )
    return task_id


def delete_task(db: Session, task_id: str) -> None:
    """Delete partitions, then ranges, then the task row, atomically."""
    if db.get(Task, task_id) is None:
        raise NotFoundError(f"Task '{task_id}' not found")
    try:
        removed = partition_store.delete_by_task(db, task_id)
        db.execute(
            delete(TaskTimeRange).where(TaskTimeRange.task_id == task_id).execution_options(synchronize_session=False)
        )
        db.execute(delete(Task).where(Task.task_id == task_id).execution_options(synchronize_session=False))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expunge_all()
    get_metrics_cache().forget(task_id)
    logger.info("Task deleted task=%s partitions_removed=%s", task_id, removed)
