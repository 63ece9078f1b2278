"""Recurring range generation: schedule CRUD and the due-schedule runner."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.timeutil import as_utc, utcnow
from app.db.models.scheduled_task import ScheduledTask
from app.db.models.task import Task
from app.services import range_service
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SCHEDULED_CREATOR_PREFIX = "scheduled:"

OUTCOME_EXECUTED = "executed"
OUTCOME_DISABLED = "disabled"
OUTCOME_SKIPPED = "skipped"


@dataclass
class ScheduleRunStats:
    schedules_due: int = 0
    executed: int = 0
    disabled: int = 0
    skipped: int = 0
    failed: int = 0


def _require_positive(name: str, value: Optional[int]) -> None:
    if value is None or value <= 0:
        raise ValidationError(f"{name} must be positive")


def _require_schedule(db: Session, schedule_id: str) -> ScheduledTask:
    schedule = db.get(ScheduledTask, schedule_id)
    if schedule is None:
        raise NotFoundError(f"Schedule '{schedule_id}' not found")
    return schedule


def list_schedules(db: Session) -> List[ScheduledTask]:
    return list(db.scalars(select(ScheduledTask).order_by(ScheduledTask.task_id, ScheduledTask.created_at)))


def list_schedules_for_task(db: Session, task_id: str) -> List[ScheduledTask]:
    return list(
        db.scalars(
            select(ScheduledTask).where(ScheduledTask.task_id == task_id).order_by(ScheduledTask.created_at)
        )
    )


def get_schedule(db: Session, schedule_id: str) -> ScheduledTask:
    return _require_schedule(db, schedule_id)


def create_schedule(
    db: Session,
    *,
    task_id: str,
    interval_seconds: int,
    bulk_size_seconds: int,
    first_execution_time: datetime | None = None,
    created_by: str | None = None,
    now: datetime | None = None,
) -> ScheduledTask:
    task_id = (task_id or "").strip()
    if db.get(Task, task_id) is None:
        raise NotFoundError(f"Task '{task_id}' not found")
    _require_positive("interval_seconds", interval_seconds)
    _require_positive("bulk_size_seconds", bulk_size_seconds)

    now = now or utcnow()
    schedule = ScheduledTask(
        task_id=task_id,
        interval_seconds=interval_seconds,
        bulk_size_seconds=bulk_size_seconds,
        last_execution_time=None,
        next_execution_time=as_utc(first_execution_time) or now,
        is_enabled=True,
        created_at=now,
        created_by=(created_by or "").strip() or "system",
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    logger.info(
        "Schedule created schedule=%s task=%s interval=%ss bulk=%ss",
        schedule.schedule_id,
        schedule.task_id,
        schedule.interval_seconds,
        schedule.bulk_size_seconds,
    )
    return schedule


def update_schedule(
    db: Session,
    schedule_id: str,
    *,
    interval_seconds: Optional[int] = None,
    bulk_size_seconds: Optional[int] = None,
    is_enabled: Optional[bool] = None,
    now: datetime | None = None,
) -> ScheduledTask:
    schedule = _require_schedule(db, schedule_id)
    if interval_seconds is not None:
        _require_positive("interval_seconds", interval_seconds)
        schedule.interval_seconds = interval_seconds
    if bulk_size_seconds is not None:
        _require_positive("bulk_size_seconds", bulk_size_seconds)
        schedule.bulk_size_seconds = bulk_size_seconds
    if is_enabled is not None:
        schedule.is_enabled = is_enabled
        if is_enabled and schedule.next_execution_time is None:
            schedule.next_execution_time = now or utcnow()

    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    logger.info("Schedule updated schedule=%s enabled=%s", schedule_id, schedule.is_enabled)
    return schedule


def delete_schedule(db: Session, schedule_id: str) -> None:
    schedule = _require_schedule(db, schedule_id)
    db.delete(schedule)
    db.commit()
    logger.info("Schedule deleted schedule=%s", schedule_id)


def execute_due_schedules(db: Session, now: datetime | None = None) -> ScheduleRunStats:
    """Run every enabled schedule whose next execution is due.

    One schedule failing is logged and skipped; the rest still run. A schedule
    another runner executed first is counted as skipped.
    """
    now = now or utcnow()
    due_ids = list(
        db.scalars(
            select(ScheduledTask.schedule_id)
            .where(
                ScheduledTask.is_enabled.is_(True),
                ScheduledTask.next_execution_time.isnot(None),
                ScheduledTask.next_execution_time <= now,
            )
            .order_by(ScheduledTask.next_execution_time)
        )
    )
    stats = ScheduleRunStats(schedules_due=len(due_ids))
    for schedule_id in due_ids:
        try:
            outcome = _execute_schedule(db, schedule_id, now)
        except Exception:
            db.rollback()
            stats.failed += 1
            logger.exception("Scheduled range generation failed schedule=%s", schedule_id)
            continue
        if outcome == OUTCOME_EXECUTED:
            stats.executed += 1
        elif outcome == OUTCOME_DISABLED:
            stats.disabled += 1
        else:
            stats.skipped += 1

    if due_ids:
        logger.info(
            "Due schedules processed due=%s executed=%s disabled=%s skipped=%s failed=%s",
            stats.schedules_due,
            stats.executed,
            stats.disabled,
            stats.skipped,
            stats.failed,
        )
    return stats


def _claim_run(
    db: Session,
    schedule_id: str,
    observed_next: datetime,
    last_execution_time: datetime,
    next_execution_time: datetime,
) -> bool:
    """Advance the schedule only if no other runner moved it since it was read."""
    result = db.execute(
        update(ScheduledTask)
        .where(
            ScheduledTask.schedule_id == schedule_id,
            ScheduledTask.is_enabled.is_(True),
            ScheduledTask.next_execution_time == observed_next,
        )
        .values(last_execution_time=last_execution_time, next_execution_time=next_execution_time)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _execute_schedule(db: Session, schedule_id: str, now: datetime) -> str:
    schedule = _require_schedule(db, schedule_id)
    task = db.get(Task, schedule.task_id)
    if task is None:
        logger.warning(
            "Task %s not found for schedule %s, disabling schedule",
            schedule.task_id,
            schedule_id,
        )
        schedule.is_enabled = False
        schedule.next_execution_time = None
        db.commit()
        return OUTCOME_DISABLED

    time_from = as_utc(schedule.last_execution_time) or now
    time_to = time_from + timedelta(seconds=schedule.bulk_size_seconds)
    # The range is written in the same transaction as the claim, so a lost race
    # never leaves a generated range behind.
    if not _claim_run(
        db,
        schedule_id,
        schedule.next_execution_time,
        time_to,
        now + timedelta(seconds=schedule.interval_seconds),
    ):
        db.rollback()
        logger.info("Schedule %s already executed by another runner, skipping", schedule_id)
        return OUTCOME_SKIPPED

    _, inserted = range_service.create_range_with_partitions(
        db,
        task,
        time_from,
        time_to,
        f"{SCHEDULED_CREATOR_PREFIX}{schedule_id}",
        now,
    )
    task.last_update = now
    db.commit()

    logger.info(
        "Schedule executed schedule=%s task=%s from=%s to=%s partitions=%s",
        schedule_id,
        task.task_id,
        time_from.isoformat(),
        time_to.isoformat(),
        inserted,
    )
    return OUTCOME_EXECUTED
