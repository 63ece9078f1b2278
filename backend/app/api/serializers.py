"""Model-to-schema conversion shared by the routers."""
from __future__ import annotations

from app.api.schemas.progress import (
    HistogramBucketPayload,
    MetricSamplePayload,
    StatusCountPayload,
    TaskMetrics,
    TaskProgress,
    TaskStatusHistogram,
)
from app.api.schemas.range import TaskRange
from app.api.schemas.schedule import ScheduleResponse
from app.api.schemas.task import TaskSummary
from app.core.timeutil import as_utc
from app.services.histogram_service import StatusHistogram
from app.services.metrics_cache import MetricsView
from app.services.task_service import TaskListing
from app.services.task_status import ProgressSnapshot


def serialize_progress(progress: ProgressSnapshot) -> TaskProgress:
    return TaskProgress(**progress.as_dict())


def serialize_task(listing: TaskListing) -> TaskSummary:
    task = listing.task
    return TaskSummary(
        task_id=task.task_id,
        description=task.description or "",
        created_by=task.created_by or "",
        last_update=as_utc(task.last_update),
        partition_size_seconds=task.partition_size_seconds,
        type=listing.type,
        progress=serialize_progress(listing.progress) if listing.progress is not None else None,
    )


def serialize_range(item) -> TaskRange:
    return TaskRange(
        range_id=item.range_id,
        time_from=as_utc(item.time_from),
        time_to=as_utc(item.time_to),
        creation_time=as_utc(item.creation_time),
        created_by=item.created_by or "",
    )


def serialize_metrics(view: MetricsView) -> TaskMetrics:
    return TaskMetrics(
        progress=serialize_progress(view.progress),
        partitions_per_minute=view.partitions_per_minute,
        estimated_minutes_remaining=view.estimated_minutes_remaining,
        estimated_finish_utc=view.estimated_finish_utc,
        samples=[
            MetricSamplePayload(timestamp_utc=sample.timestamp_utc, done=sample.done, total=sample.total)
            for sample in view.samples
        ],
    )


def serialize_histogram(histogram: StatusHistogram) -> TaskStatusHistogram:
    return TaskStatusHistogram(
        interval_seconds=histogram.interval_seconds,
        buckets=[
            HistogramBucketPayload(
                timestamp_utc=bucket.timestamp_utc,
                statuses=[StatusCountPayload(status=item.status, count=item.count) for item in bucket.statuses],
            )
            for bucket in histogram.buckets
        ],
    )


def serialize_schedule(schedule) -> ScheduleResponse:
    return ScheduleResponse(
        schedule_id=schedule.schedule_id,
        task_id=schedule.task_id,
        interval_seconds=schedule.interval_seconds,
        bulk_size_seconds=schedule.bulk_size_seconds,
        last_execution_time=as_utc(schedule.last_execution_time),
        next_execution_time=as_utc(schedule.next_execution_time),
        is_enabled=bool(schedule.is_enabled),
        created_at=as_utc(schedule.created_at),
        created_by=schedule.created_by or "",
    )
