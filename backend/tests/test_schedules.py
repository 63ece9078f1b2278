from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from app.core.timeutil import as_utc
from app.db.models.task_time_range import TaskTimeRange
from app.services import partition_store, range_service, schedule_service, task_service

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _seed_task(db, task_id="sched"):
    task_service.create_task(
        db,
        task_id=task_id,
        ranges=[(T0 - timedelta(hours=1), T0)],
        created_by="alice",
        now=T0,
    )
    return task_id


def _ranges(db, task_id):
    return list(
        db.scalars(select(TaskTimeRange).where(TaskTimeRange.task_id == task_id).order_by(TaskTimeRange.time_from))
    )


def test_due_schedule_generates_consecutive_ranges(db):
    task_id = _seed_task(db)
    schedule = schedule_service.create_schedule(
        db, task_id=task_id, interval_seconds=3600, bulk_size_seconds=1800, now=T0
    )
    assert as_utc(schedule.next_execution_time) == T0

    stats = schedule_service.execute_due_schedules(db, now=T0)
    assert (stats.schedules_due, stats.executed, stats.failed) == (1, 1, 0)

    generated = _ranges(db, task_id)[-1]
    assert (as_utc(generated.time_from), as_utc(generated.time_to)) == (T0, T0 + timedelta(minutes=30))
    assert generated.created_by == f"scheduled:{schedule.schedule_id}"

    db.expire_all()
    refreshed = schedule_service.get_schedule(db, schedule.schedule_id)
    assert as_utc(refreshed.last_execution_time) == T0 + timedelta(minutes=30)
    assert as_utc(refreshed.next_execution_time) == T0 + timedelta(hours=1)

    # Not due again until the interval passes.
    assert schedule_service.execute_due_schedules(db, now=T0 + timedelta(minutes=59)).schedules_due == 0

    later = T0 + timedelta(hours=1)
    schedule_service.execute_due_schedules(db, now=later)
    second = _ranges(db, task_id)[-1]
    assert (as_utc(second.time_from), as_utc(second.time_to)) == (
        T0 + timedelta(minutes=30),
        T0 + timedelta(hours=1),
    )


def test_schedule_run_adds_partitions_and_touches_task(db):
    task_id = _seed_task(db)
    schedule_service.create_schedule(db, task_id=task_id, interval_seconds=60, bulk_size_seconds=900, now=T0)
    run_at = T0 + timedelta(seconds=5)
    schedule_service.execute_due_schedules(db, now=run_at)

    db.expire_all()
    task = task_service.get_task(db, task_id)
    assert as_utc(task.last_update) == run_at
    counts = partition_store.status_counts(db, task_id)
    assert counts == {"TODO": 12 + 3}


def test_schedule_for_deleted_task_is_disabled(db):
    task_id = _seed_task(db)
    schedule_id = schedule_service.create_schedule(
        db, task_id=task_id, interval_seconds=60, bulk_size_seconds=60, now=T0
    ).schedule_id
    task_service.delete_task(db, task_id)

    stats = schedule_service.execute_due_schedules(db, now=T0)
    assert (stats.executed, stats.disabled) == (0, 1)

    refreshed = schedule_service.get_schedule(db, schedule_id)
    assert refreshed.is_enabled is False
    assert refreshed.next_execution_time is None
    assert schedule_service.execute_due_schedules(db, now=T0 + timedelta(days=1)).schedules_due == 0


def test_one_failing_schedule_does_not_block_others(db, monkeypatch, caplog):
    _seed_task(db, "first")
    _seed_task(db, "second")
    broken = schedule_service.create_schedule(db, task_id="first", interval_seconds=60, bulk_size_seconds=60, now=T0)
    schedule_service.create_schedule(
        db, task_id="second", interval_seconds=60, bulk_size_seconds=60, now=T0 + timedelta(seconds=1)
    )

    real_create = range_service.create_range_with_partitions

    def flaky(session, task, *args, **kwargs):
        if task.task_id == "first":
            raise RuntimeError("boom")
        return real_create(session, task, *args, **kwargs)

    monkeypatch.setattr(range_service, "create_range_with_partitions", flaky)
    caplog.set_level("ERROR")
    stats = schedule_service.execute_due_schedules(db, now=T0 + timedelta(minutes=1))

    assert (stats.schedules_due, stats.executed, stats.failed) == (2, 1, 1)
    assert "Scheduled range generation failed" in caplog.text
    assert len(_ranges(db, "second")) == 2
    db.expire_all()
    untouched = schedule_service.get_schedule(db, broken.schedule_id)
    assert untouched.last_execution_time is None
    assert untouched.is_enabled is True


def test_schedule_api_crud(client):
    test_client, _ = client
    resp = test_client.post(
        "/api/tasks",
        json={
            "task_id": "api-sched",
            "created_by": "alice",
            "ranges": [{"time_from": T0.isoformat(), "time_to": (T0 + timedelta(hours=1)).isoformat()}],
        },
    )
    assert resp.status_code == 201

    assert test_client.post(
        "/api/schedules", json={"task_id": "missing", "interval_seconds": 60, "bulk_size_seconds": 60}
    ).status_code == 404
    assert test_client.post(
        "/api/schedules", json={"task_id": "api-sched", "interval_seconds": 0, "bulk_size_seconds": 60}
    ).status_code == 400

    first_run = datetime.now(timezone.utc) + timedelta(days=1)
    resp = test_client.post(
        "/api/schedules",
        json={
            "task_id": "api-sched",
            "interval_seconds": 3600,
            "bulk_size_seconds": 1800,
            "first_execution_time": first_run.isoformat(),
            "created_by": "ops",
        },
    )
    assert resp.status_code == 201
    created = resp.json()
    schedule_id = created["schedule_id"]
    assert created["is_enabled"] is True
    assert created["created_by"] == "ops"
    assert created["last_execution_time"] is None

    assert [item["schedule_id"] for item in test_client.get("/api/schedules").json()] == [schedule_id]
    assert len(test_client.get("/api/schedules/task/api-sched").json()) == 1
    assert test_client.get("/api/schedules/task/other").json() == []
    assert test_client.get(f"/api/schedules/{schedule_id}").json()["interval_seconds"] == 3600

    # First execution is a day away, so nothing is due yet.
    run = test_client.post("/api/schedules/execute-due").json()
    assert run["schedules_due"] == 0
    assert run["request_id"]

    patched = test_client.patch(f"/api/schedules/{schedule_id}", json={"interval_seconds": 120, "is_enabled": False})
    assert patched.status_code == 200
    assert patched.json()["interval_seconds"] == 120
    assert patched.json()["is_enabled"] is False
    assert test_client.patch(f"/api/schedules/{schedule_id}", json={"bulk_size_seconds": -1}).status_code == 400

    assert test_client.delete(f"/api/schedules/{schedule_id}").status_code == 204
    assert test_client.get(f"/api/schedules/{schedule_id}").status_code == 404
    assert test_client.delete(f"/api/schedules/{schedule_id}").status_code == 404


def test_execute_due_endpoint_runs_schedules(client):
    test_client, _ = client
    test_client.post(
        "/api/tasks",
        json={
            "task_id": "due-now",
            "created_by": "alice",
            "ranges": [{"time_from": T0.isoformat(), "time_to": (T0 + timedelta(hours=1)).isoformat()}],
        },
    )
    test_client.post("/api/schedules", json={"task_id": "due-now", "interval_seconds": 600, "bulk_size_seconds": 300})

    run = test_client.post("/api/schedules/execute-due").json()
    assert (run["schedules_due"], run["executed"], run["skipped"], run["failed"]) == (1, 1, 0, 0)
    ranges = test_client.get("/api/tasks/due-now/ranges").json()
    assert len(ranges) == 2
    assert ranges[-1]["created_by"].startswith("scheduled:")


def test_run_already_taken_by_another_runner_is_skipped(file_session_factory, monkeypatch):
    seed = file_session_factory()
    try:
        task_id = _seed_task(seed)
        schedule_id = schedule_service.create_schedule(
            seed, task_id=task_id, interval_seconds=3600, bulk_size_seconds=1800, now=T0
        ).schedule_id
    finally:
        seed.close()

    ours = file_session_factory()
    rival_stats = []
    real_require = schedule_service._require_schedule

    def rival_runs_after_our_read(session, sid):
        schedule = real_require(session, sid)
        if session is ours and not rival_stats:
            rival = file_session_factory()
            try:
                rival_stats.append(schedule_service.execute_due_schedules(rival, now=T0))
            finally:
                rival.close()
        return schedule

    monkeypatch.setattr(schedule_service, "_require_schedule", rival_runs_after_our_read)
    try:
        stats = schedule_service.execute_due_schedules(ours, now=T0 + timedelta(seconds=1))
        assert rival_stats[0].executed == 1
        assert (stats.schedules_due, stats.executed, stats.skipped, stats.failed) == (1, 0, 1, 0)

        generated = [item for item in _ranges(ours, task_id) if item.created_by.startswith("scheduled:")]
        assert len(generated) == 1
        assert (as_utc(generated[0].time_from), as_utc(generated[0].time_to)) == (T0, T0 + timedelta(minutes=30))

        ours.expire_all()
        schedule = schedule_service.get_schedule(ours, schedule_id)
        assert as_utc(schedule.last_execution_time) == T0 + timedelta(minutes=30)
        assert as_utc(schedule.next_execution_time) == T0 + timedelta(hours=1)
    finally:
        ours.close()
