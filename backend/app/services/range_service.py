"""Time range management and range-to-partition generation."""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Sequence, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.timeutil import as_utc, utcnow
from app.db.models.task import Task
from app.db.models.task_time_range import TaskTimeRange, new_range_id
from app.services import partition_store
from app.services.errors import ConflictError, NotFoundError, ValidationError
from app.services.partition_slicer import slice_range, validate_range

logger = logging.getLogger(__name__)

DELETE_MODES = {"partitions", "range", "all"}


def resolve_partition_size(task: Task) -> int:
    return task.partition_size_seconds or settings.default_partition_seconds


def list_ranges(db: Session, task_id: str) -> List[TaskTimeRange]:
    if db.get(Task, task_id) is None:
        raise NotFoundError(f"Task '{task_id}' not found")
    return list(
        db.scalars(
            select(TaskTimeRange).where(TaskTimeRange.task_id == task_id).order_by(TaskTimeRange.time_from)
        )
    )


def ranges_by_task(db: Session, task_ids: Sequence[str]) -> Dict[str, List[TaskTimeRange]]:
    if not task_ids:
        return {}
    grouped: Dict[str, List[TaskTimeRange]] = defaultdict(list)
    for item in db.scalars(select(TaskTimeRange).where(TaskTimeRange.task_id.in_(list(task_ids)))):
        grouped[item.task_id].append(item)
    return dict(grouped)


def create_range_with_partitions(
    db: Session,
    task: Task,
    time_from: datetime,
    time_to: datetime,
    created_by: str,
    now: datetime,
) -> Tuple[TaskTimeRange, int]:
    """Stage a range plus its partitions in the current transaction.

    The caller owns the commit so the range and its partitions land together.
    """
    plan = slice_range(time_from, time_to, resolve_partition_size(task), settings.todo_status)
    range_entity = TaskTimeRange(
        range_id=new_range_id(),
        task_id=task.task_id,
        time_from=time_from,
        time_to=time_to,
        creation_time=now,
        created_by=created_by,
    )
    db.add(range_entity)
    db.flush()
    inserted = partition_store.bulk_insert(db, task.task_id, range_entity.range_id, plan)
    return range_entity, inserted


def add_range(
    db: Session,
    task_id: str,
    time_from: datetime,
    time_to: datetime,
    created_by: str | None,
    now: datetime | None = None,
) -> TaskTimeRange:
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Task '{task_id}' not found")

    time_from = as_utc(time_from)
    time_to = as_utc(time_to)
    validate_range(time_from, time_to)
    owner = (created_by or "").strip()
    if not owner:
        raise ValidationError("created_by is required")

    now = now or utcnow()
    try:
        range_entity, inserted = create_range_with_partitions(db, task, time_from, time_to, owner, now)
        db.execute(update(Task).where(Task.task_id == task_id).values(last_update=now))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Range overlaps existing partitions or duplicates an existing range") from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Range added task=%s range=%s from=%s to=%s partitions=%s by=%s",
        task_id,
        range_entity.range_id,
        time_from.isoformat(),
        time_to.isoformat(),
        inserted,
        owner,
    )
    return range_entity


def delete_range(db: Session, task_id: str, time_from: datetime, time_to: datetime, mode: str = "all") -> None:
    """Remove a range's partitions, the range row, or both (``mode``)."""
    normalized = (mode or "all").strip().lower()
    if normalized not in DELETE_MODES:
        raise ValidationError("delete mode must be one of: partitions, range, all")
    if db.get(Task, task_id) is None:
        raise NotFoundError(f"Task '{task_id}' not found")

    time_from = as_utc(time_from)
    time_to = as_utc(time_to)
    target = db.scalars(
        select(TaskTimeRange).where(
            TaskTimeRange.task_id == task_id,
            TaskTimeRange.time_from == time_from,
            TaskTimeRange.time_to == time_to,
        )
    ).first()

    removed_partitions = 0
    try:
        if normalized in {"partitions", "all"} and target is not None:
            removed_partitions = partition_store.delete_by_range(db, task_id, target.range_id)
        if normalized in {"range", "all"}:
            db.execute(
                delete(TaskTimeRange)
                .where(
                    TaskTimeRange.task_id == task_id,
                    TaskTimeRange.time_from == time_from,
                    TaskTimeRange.time_to == time_to,
                )
                .execution_options(synchronize_session=False)
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Range delete task=%s from=%s to=%s mode=%s found=%s partitions_removed=%s",
        task_id,
        time_from.isoformat(),
        time_to.isoformat(),
        normalized,
        target is not None,
        removed_partitions,
    )
