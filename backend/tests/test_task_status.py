from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from app.services.task_status import (
    build_progress,
    build_progress_map,
    calculate_expected_total,
    classify_status,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_classify_status_is_case_and_whitespace_insensitive():
    assert classify_status(" Completed ") == "done"
    assert classify_status("DONE") == "done"
    assert classify_status("Running") == "in_progress"
    assert classify_status("IN_PROGRESS") == "in_progress"
    assert classify_status("TODO") == "todo"
    assert classify_status("failed") == "todo"
    assert classify_status(None) == "todo"


def test_count_mode_uses_observed_rows():
    progress = build_progress({"TODO": 2, "IN_PROGRESS": 1, "done": 1})
    assert (progress.total, progress.done, progress.in_progress, progress.todo) == (4, 1, 1, 2)
    assert progress.percent_done == 25.0
    assert progress.percent_in_progress == 25.0
    assert progress.percent_todo == 50.0


def test_expected_total_counts_removed_partitions_as_done():
    # 10 expected, 3 rows left: the 7 missing ones were finished and cleaned up.
    progress = build_progress({"TODO": 2, "IN_PROGRESS": 1}, expected_total=10)
    assert (progress.total, progress.done, progress.in_progress, progress.todo) == (10, 7, 1, 2)
    assert progress.percent_done == 70.0


def test_expected_total_trims_overflow_from_todo_first():
    progress = build_progress({"TODO": 5, "IN_PROGRESS": 2}, expected_total=4)
    assert (progress.total, progress.done, progress.in_progress, progress.todo) == (4, 0, 2, 2)


def test_expected_total_trims_in_progress_when_todo_exhausted():
    progress = build_progress({"TODO": 1, "IN_PROGRESS": 5}, expected_total=3)
    assert (progress.done, progress.in_progress, progress.todo) == (0, 3, 0)


def test_empty_task_has_zero_progress():
    progress = build_progress({}, expected_total=0)
    assert progress.total == 0
    assert progress.percent_done == 0.0


def test_percentages_are_rounded_to_two_decimals():
    progress = build_progress({"done": 1, "todo": 2})
    assert progress.percent_done == 33.33
    assert progress.percent_todo == 66.67


def test_calculate_expected_total_sums_ranges():
    ranges = [
        SimpleNamespace(time_from=T0, time_to=T0 + timedelta(minutes=12)),
        SimpleNamespace(time_from=T0 + timedelta(hours=1), time_to=T0 + timedelta(hours=2)),
    ]
    assert calculate_expected_total(ranges, 300) == 3 + 12


def test_progress_map_covers_tasks_without_partitions():
    progress = build_progress_map(["a", "b"], {"a": {"done": 2}}, {"a": 2, "b": 0})
    assert progress["a"].percent_done == 100.0
    assert progress["b"].total == 0


def test_progress_fields_always_add_up():
    for done in range(0, 7):
        for in_progress in range(0, 7):
            for todo in range(0, 7):
                counts = {"done": done, "IN_PROGRESS": in_progress, "TODO": todo}
                for expected in (None, *range(0, 22, 3)):
                    progress = build_progress(counts, expected)
                    fields = (progress.done, progress.in_progress, progress.todo)
                    assert min(fields) >= 0, (counts, expected)
                    assert sum(fields) == progress.total, (counts, expected)
                    if expected is not None:
                        assert progress.total == expected
