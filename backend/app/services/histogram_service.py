"""Time-bucketed partition status histograms."""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.timeutil import as_utc
from app.db.models.task import Task
from app.services import partition_store
from app.services.errors import NotFoundError
from app.services.partition_store import HistogramRow

MIN_INTERVAL_SECONDS = 1
MAX_INTERVAL_SECONDS = 86400
FALLBACK_INTERVAL_SECONDS = 3600

# (max span, bucket width in seconds), checked in order.
_SPAN_BREAKPOINTS = (
    (timedelta(hours=6), 300),
    (timedelta(days=1), 900),
    (timedelta(days=3), 1800),
    (timedelta(days=7), 3600),
    (timedelta(days=30), 14400),
    (timedelta(days=90), 43200),
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class StatusCount:
    status: str
    count: int


@dataclass
class HistogramBucket:
    timestamp_utc: datetime
    statuses: List[StatusCount] = field(default_factory=list)


@dataclass
class StatusHistogram:
    interval_seconds: int
    buckets: List[HistogramBucket] = field(default_factory=list)


def get_histogram(
    db: Session,
    task_id: str,
    interval_seconds: Optional[int] = None,
    time_from: Optional[datetime] = None,
    time_to: Optional[datetime] = None,
) -> StatusHistogram:
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Task '{task_id}' not found")

    time_from = as_utc(time_from)
    time_to = as_utc(time_to)
    rows = partition_store.histogram_rows(db, task_id, time_from, time_to)
    interval = resolve_interval(interval_seconds, time_from, time_to, task.partition_size_seconds, rows)
    return build_histogram(rows, interval)


def resolve_interval(
    interval_seconds: Optional[int],
    time_from: Optional[datetime],
    time_to: Optional[datetime],
    partition_size_seconds: Optional[int],
    rows: Sequence[HistogramRow],
) -> int:
    """Pick the bucket width: explicit (clamped), else by span, else partition size."""
    if interval_seconds is not None:
        return max(MIN_INTERVAL_SECONDS, min(MAX_INTERVAL_SECONDS, int(interval_seconds)))

    span_from = as_utc(time_from)
    span_to = as_utc(time_to)
    if (span_from is None or span_to is None) and rows:
        starts = [as_utc(row.time_from) for row in rows]
        span_from = span_from or min(starts)
        span_to = span_to or max(starts)

    if span_from is not None and span_to is not None:
        span = span_to - span_from
        for limit, width in _SPAN_BREAKPOINTS:
            if span <= limit:
                return width
        return MAX_INTERVAL_SECONDS

    return partition_size_seconds or FALLBACK_INTERVAL_SECONDS


def build_histogram(rows: Sequence[HistogramRow], interval_seconds: int) -> StatusHistogram:
    counts: Dict[int, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for row in rows:
        epoch = math.floor((as_utc(row.time_from) - _EPOCH).total_seconds())
        bucket = (epoch // interval_seconds) * interval_seconds
        status = (row.status or "").strip().lower() or "unknown"
        counts[bucket][status] += 1

    buckets = [
        HistogramBucket(
            timestamp_utc=_EPOCH + timedelta(seconds=bucket),
            statuses=[StatusCount(status=status, count=count) for status, count in sorted(per_status.items())],
        )
        for bucket, per_status in sorted(counts.items())
    ]
    return StatusHistogram(interval_seconds=interval_seconds, buckets=buckets)
