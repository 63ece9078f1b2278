"""In-memory ring buffers of progress samples per task."""
from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional

from app.core.config import settings
from app.core.timeutil import utcnow
from app.services.task_status import ProgressSnapshot


@dataclass(frozen=True)
class MetricSample:
    timestamp_utc: datetime
    done: int
    total: int


@dataclass
class MetricsView:
    progress: ProgressSnapshot = field(default_factory=ProgressSnapshot)
    partitions_per_minute: Optional[float] = None
    estimated_minutes_remaining: Optional[float] = None
    estimated_finish_utc: Optional[datetime] = None
    samples: List[MetricSample] = field(default_factory=list)


class TaskMetricsCache:
    """Bounded per-task sample history.

    Best effort only: contents are lost on restart and each API process keeps its
    own copy. Task ids are matched case-insensitively.
    """

    def __init__(self, max_samples: int | None = None) -> None:
        self._max_samples = max(2, max_samples or settings.metrics_max_samples)
        self._samples: Dict[str, Deque[MetricSample]] = {}
        self._lock = threading.Lock()

    @property
    def max_samples(self) -> int:
        return self._max_samples

    def add_sample(self, task_id: str, sample: MetricSample) -> None:
        key = task_id.lower()
        with self._lock:
            ring = self._samples.get(key)
            if ring is None:
                ring = deque(maxlen=self._max_samples)
                self._samples[key] = ring
            ring.append(sample)

    def samples(self, task_id: str) -> List[MetricSample]:
        with self._lock:
            return list(self._samples.get(task_id.lower(), ()))

    def forget(self, task_id: str) -> None:
        with self._lock:
            self._samples.pop(task_id.lower(), None)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def get(self, task_id: str, now: datetime | None = None) -> MetricsView:
        """Derive throughput and ETA from the retained samples."""
        view = MetricsView(samples=self.samples(task_id))
        if not view.samples:
            return view

        first, last = view.samples[0], view.samples[-1]
        if len(view.samples) >= 2:
            minutes = (last.timestamp_utc - first.timestamp_utc).total_seconds() / 60
            if minutes > 0:
                view.partitions_per_minute = round((last.done - first.done) / minutes, 2)

        todo = max(0, last.total - last.done)
        view.progress = ProgressSnapshot(total=last.total, done=last.done, in_progress=0, todo=todo)
        if last.total > 0:
            view.progress.percent_done = round(last.done * 100.0 / last.total, 2)
            view.progress.percent_todo = round(todo * 100.0 / last.total, 2)

        rate = view.partitions_per_minute
        if rate is not None and rate > 0 and last.total > 0:
            minutes_remaining = todo / rate
            view.estimated_minutes_remaining = round(minutes_remaining, 1)
            view.estimated_finish_utc = (now or utcnow()) + timedelta(minutes=minutes_remaining)
        return view


metrics_cache = TaskMetricsCache()


def get_metrics_cache() -> TaskMetricsCache:
    return metrics_cache
