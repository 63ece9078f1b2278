"""Status classification and progress aggregation for task partitions."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Mapping, Optional

from app.services.partition_slicer import expected_slice_count

DONE_STATUSES = {"done", "complete", "completed"}
IN_PROGRESS_STATUSES = {"in_progress", "inprogress", "running"}

BUCKET_DONE = "done"
BUCKET_IN_PROGRESS = "in_progress"
BUCKET_TODO = "todo"


@dataclass
class ProgressSnapshot:
    total: int = 0
    done: int = 0
    in_progress: int = 0
    todo: int = 0
    percent_done: float = 0.0
    percent_in_progress: float = 0.0
    percent_todo: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def normalize_status(status: Optional[str]) -> str:
    return (status or "").strip().lower()


def classify_status(status: Optional[str]) -> str:
    """Map an open-ended status label onto the done / in_progress / todo buckets."""
    normalized = normalize_status(status)
    if normalized in DONE_STATUSES:
        return BUCKET_DONE
    if normalized in IN_PROGRESS_STATUSES:
        return BUCKET_IN_PROGRESS
    return BUCKET_TODO


def calculate_expected_total(ranges: Iterable, partition_size_seconds: int) -> int:
    """Sum of partitions every range should have produced; ranges need ``time_from``/``time_to``."""
    return sum(expected_slice_count(r.time_from, r.time_to, partition_size_seconds) for r in ranges)


def build_progress(counts: Mapping[str, int], expected_total: Optional[int] = None) -> ProgressSnapshot:
    """Aggregate per-status partition counts into a progress snapshot.

    Without ``expected_total`` the observed counts are the whole picture. With it,
    ``done`` is whatever the expected total leaves after the in-progress and todo
    rows, so completed partitions that were removed still count as done.
    """
    done = in_progress = todo = 0
    for status, count in counts.items():
        bucket = classify_status(status)
        if bucket == BUCKET_DONE:
            done += int(count)
        elif bucket == BUCKET_IN_PROGRESS:
            in_progress += int(count)
        else:
            todo += int(count)

    if expected_total is None:
        return _finalize(ProgressSnapshot(total=done + in_progress + todo, done=done, in_progress=in_progress, todo=todo))

    total = max(0, int(expected_total))
    overflow = in_progress + todo - total
    if overflow > 0:
        trimmed = min(todo, overflow)
        todo -= trimmed
        overflow -= trimmed
        in_progress -= min(in_progress, overflow)
    done = max(0, total - in_progress - todo)
    return _finalize(ProgressSnapshot(total=total, done=done, in_progress=in_progress, todo=todo))


def build_progress_map(
    task_ids: Iterable[str],
    counts_by_task: Mapping[str, Mapping[str, int]],
    expected_totals: Optional[Mapping[str, int]] = None,
) -> Dict[str, ProgressSnapshot]:
    """Batch form of :func:`build_progress`, one snapshot per requested task."""
    progress: Dict[str, ProgressSnapshot] = {}
    for task_id in task_ids:
        expected = None if expected_totals is None else expected_totals.get(task_id, 0)
        progress[task_id] = build_progress(counts_by_task.get(task_id, {}), expected)
    return progress


def _finalize(progress: ProgressSnapshot) -> ProgressSnapshot:
    if progress.total <= 0:
        return ProgressSnapshot()
    progress.percent_done = round(progress.done * 100.0 / progress.total, 2)
    progress.percent_in_progress = round(progress.in_progress * 100.0 / progress.total, 2)
    progress.percent_todo = round(progress.todo * 100.0 / progress.total, 2)
    return progress
