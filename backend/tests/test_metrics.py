from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services import metrics_sampler, task_service
from app.services.metrics_cache import MetricSample, TaskMetricsCache, get_metrics_cache

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _sample(minute, done, total=100):
    return MetricSample(timestamp_utc=T0 + timedelta(minutes=minute), done=done, total=total)


def test_ring_keeps_only_the_newest_samples():
    cache = TaskMetricsCache(max_samples=3)
    for minute in range(5):
        cache.add_sample("task", _sample(minute, minute))
    assert [sample.done for sample in cache.samples("task")] == [2, 3, 4]


def test_task_ids_are_case_insensitive():
    cache = TaskMetricsCache(max_samples=5)
    cache.add_sample("Reflow-1", _sample(0, 1))
    cache.add_sample("reflow-1", _sample(1, 2))
    assert len(cache.samples("REFLOW-1")) == 2
    cache.forget("REFLOW-1")
    assert cache.samples("reflow-1") == []


def test_throughput_and_eta():
    cache = TaskMetricsCache(max_samples=10)
    cache.add_sample("t", _sample(0, 10))
    cache.add_sample("t", _sample(4, 30))
    now = T0 + timedelta(minutes=4)
    view = cache.get("t", now=now)

    assert view.partitions_per_minute == 5.0
    assert view.progress.done == 30
    assert view.progress.todo == 70
    assert view.progress.in_progress == 0
    assert view.progress.percent_done == 30.0
    assert view.estimated_minutes_remaining == 14.0
    assert view.estimated_finish_utc == now + timedelta(minutes=14)


def test_single_sample_has_no_rate():
    cache = TaskMetricsCache(max_samples=10)
    cache.add_sample("t", _sample(0, 10))
    view = cache.get("t")
    assert view.partitions_per_minute is None
    assert view.estimated_minutes_remaining is None
    assert view.progress.total == 100


def test_stalled_task_has_no_eta():
    cache = TaskMetricsCache(max_samples=10)
    cache.add_sample("t", _sample(0, 10))
    cache.add_sample("t", _sample(5, 10))
    view = cache.get("t")
    assert view.partitions_per_minute == 0.0
    assert view.estimated_finish_utc is None


def test_sampler_records_recently_updated_tasks(db):
    now = datetime.now(timezone.utc)
    task_service.create_task(
        db,
        task_id="sampled",
        ranges=[(T0, T0 + timedelta(minutes=20))],
        created_by="alice",
        now=now,
    )
    task_service.create_task(
        db,
        task_id="stale",
        ranges=[(T0, T0 + timedelta(minutes=20))],
        created_by="alice",
        now=now - timedelta(days=2),
    )
    cache = TaskMetricsCache(max_samples=10)

    stats = metrics_sampler.run_metrics_sampling(db, cache=cache, now=now)

    assert stats.tasks_sampled == 1
    samples = cache.samples("sampled")
    assert len(samples) == 1
    assert (samples[0].done, samples[0].total) == (0, 4)
    assert cache.samples("stale") == []


def test_sample_interval_has_a_floor(monkeypatch):
    monkeypatch.setattr(metrics_sampler.settings, "metrics_sample_interval_seconds", 1)
    assert metrics_sampler.effective_sample_interval() == 2
    monkeypatch.setattr(metrics_sampler.settings, "metrics_sample_interval_seconds", 30)
    assert metrics_sampler.effective_sample_interval() == 30


def test_metrics_endpoint_reports_samples(client):
    test_client, _ = client
    cache = get_metrics_cache()
    cache.add_sample("api-task", _sample(0, 0, 10))
    cache.add_sample("api-task", _sample(2, 4, 10))
    body = test_client.get("/api/tasks/API-TASK/metrics").json()
    assert body["partitions_per_minute"] == 2.0
    assert body["estimated_minutes_remaining"] == 3.0
    assert len(body["samples"]) == 2
    assert body["progress"]["done"] == 4
