"""Partition-facing operations: progress, listing, claiming and clearing."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.timeutil import utcnow
from app.db.models.task import Task
from app.db.models.task_partition import TaskPartition
from app.services import claim_engine, partition_store, range_service
from app.services.errors import NotFoundError
from app.services.task_status import ProgressSnapshot, build_progress, build_progress_map, calculate_expected_total

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500
DEFAULT_PAGE_SIZE = 100


@dataclass
class ClaimedPartition:
    task_id: str
    range_id: Optional[str]
    time_from: datetime
    time_to: datetime
    status: str


def clamp_page(skip: Optional[int], take: Optional[int]) -> tuple[int, int]:
    safe_skip = max(skip or 0, 0)
    safe_take = max(1, min(MAX_PAGE_SIZE, take if take is not None else DEFAULT_PAGE_SIZE))
    return safe_skip, safe_take


def _require_task(db: Session, task_id: str) -> Task:
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Task '{task_id}' not found")
    return task


def _uses_expected_total() -> bool:
    return settings.progress_mode == "expected_total"


def compute_progress(db: Session, task: Task) -> ProgressSnapshot:
    counts = partition_store.status_counts(db, task.task_id)
    expected = None
    if _uses_expected_total():
        ranges = range_service.ranges_by_task(db, [task.task_id]).get(task.task_id, [])
        expected = calculate_expected_total(ranges, range_service.resolve_partition_size(task))
    return build_progress(counts, expected)


def compute_progress_map(db: Session, tasks: Sequence[Task]) -> Dict[str, ProgressSnapshot]:
    """Progress for many tasks with one counts query and one ranges query."""
    ids = [task.task_id for task in tasks]
    counts = partition_store.status_counts_for_tasks(db, ids)
    expected_totals = None
    if _uses_expected_total():
        ranges = range_service.ranges_by_task(db, ids)
        expected_totals = {
            task.task_id: calculate_expected_total(ranges.get(task.task_id, []), range_service.resolve_partition_size(task))
            for task in tasks
        }
    return build_progress_map(ids, counts, expected_totals)


def get_progress(db: Session, task_id: str) -> ProgressSnapshot:
    return compute_progress(db, _require_task(db, task_id))


def list_partitions(db: Session, task_id: str, skip: Optional[int] = None, take: Optional[int] = None) -> List[TaskPartition]:
    _require_task(db, task_id)
    safe_skip, safe_take = clamp_page(skip, take)
    return partition_store.list_partitions(db, task_id, safe_skip, safe_take)


def claim_next_partition(db: Session, task_id: str, now: datetime | None = None) -> Optional[ClaimedPartition]:
    """Claim the next todo partition; ``None`` means no work right now."""
    _require_task(db, task_id)
    in_progress = settings.in_progress_status
    key = claim_engine.claim_next(db, task_id, settings.todo_status, in_progress)
    if key is None:
        return None

    db.execute(update(Task).where(Task.task_id == task_id).values(last_update=now or utcnow()))
    db.commit()
    logger.debug("Partition claimed task=%s from=%s to=%s", task_id, key.time_from, key.time_to)
    return ClaimedPartition(
        task_id=key.task_id,
        range_id=key.range_id,
        time_from=key.time_from,
        time_to=key.time_to,
        status=in_progress,
    )


def clear_partitions(db: Session, task_id: str) -> int:
    _require_task(db, task_id)
    try:
        removed = partition_store.delete_by_task(db, task_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Partitions cleared task=%s removed=%s", task_id, removed)
    return removed
