"""Periodic progress sampling into the metrics cache."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.timeutil import utcnow
from app.db.models.task import Task
from app.services.metrics_cache import MetricSample, TaskMetricsCache, get_metrics_cache
from app.services.partition_service import compute_progress_map

logger = logging.getLogger(__name__)

MIN_SAMPLE_INTERVAL_SECONDS = 2


@dataclass
class SamplingStats:
    tasks_sampled: int


def effective_sample_interval() -> int:
    return max(MIN_SAMPLE_INTERVAL_SECONDS, settings.metrics_sample_interval_seconds)


def run_metrics_sampling(
    db: Session,
    cache: TaskMetricsCache | None = None,
    now: datetime | None = None,
) -> SamplingStats:
    """Append one sample per recently updated task."""
    cache = cache or get_metrics_cache()
    now = now or utcnow()
    lookback = now - timedelta(minutes=settings.metrics_lookback_minutes)
    tasks = list(
        db.scalars(
            select(Task)
            .where(Task.last_update >= lookback)
            .order_by(desc(Task.last_update))
            .limit(max(1, settings.metrics_max_tasks))
        )
    )
    if not tasks:
        logger.debug("Metrics sampling found no recently updated tasks")
        return SamplingStats(tasks_sampled=0)

    progress = compute_progress_map(db, tasks)
    for task in tasks:
        snapshot = progress.get(task.task_id)
        if snapshot is None:
            continue
        cache.add_sample(task.task_id, MetricSample(timestamp_utc=now, done=snapshot.done, total=snapshot.total))
    # Read-only tick; end the transaction so the next tick sees fresh data.
    db.rollback()
    return SamplingStats(tasks_sampled=len(tasks))
