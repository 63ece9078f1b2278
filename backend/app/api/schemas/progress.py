"""Schemas for progress, metrics and status histograms."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class TaskProgress(BaseModel):
    total: int = 0
    done: int = 0
    in_progress: int = 0
    todo: int = 0
    percent_done: float = 0.0
    percent_in_progress: float = 0.0
    percent_todo: float = 0.0


class MetricSamplePayload(BaseModel):
    timestamp_utc: datetime
    done: int
    total: int


class TaskMetrics(BaseModel):
    progress: TaskProgress
    partitions_per_minute: Optional[float] = None
    estimated_minutes_remaining: Optional[float] = None
    estimated_finish_utc: Optional[datetime] = None
    samples: List[MetricSamplePayload] = Field(default_factory=list)


class StatusCountPayload(BaseModel):
    status: str
    count: int


class HistogramBucketPayload(BaseModel):
    timestamp_utc: datetime
    statuses: List[StatusCountPayload]


class TaskStatusHistogram(BaseModel):
    interval_seconds: int
    buckets: List[HistogramBucketPayload]
