"""APScheduler jobs: due-schedule polling and metrics sampling.

The API process registers both jobs on its own scheduler. This module can
also run as a dedicated worker process that only executes schedules.
"""
from __future__ import annotations

import logging
import signal
import sys
import threading
from dataclasses import asdict
from datetime import datetime, timezone
from time import perf_counter

from apscheduler.schedulers.background import BackgroundScheduler

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.observability.client import init_opik
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.metrics_sampler import effective_sample_interval, run_metrics_sampling
from app.services.schedule_service import execute_due_schedules

logger = logging.getLogger(__name__)

SCHEDULE_JOB_ID = "schedule_runner_job"
METRICS_JOB_ID = "metrics_sampler_job"


def main() -> None:
    configure_logging(log_level=settings.log_level)
    init_opik()
    try:
        _validate_config()
    except ValueError as exc:
        logger.error("Invalid scheduler configuration: %s", exc)
        sys.exit(1)

    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    if not settings.scheduler_enabled:
        logger.warning("Scheduler worker started but SCHEDULER_ENABLED=false. No jobs will run.")
        return

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)
    # The metrics cache is per process, so sampling only makes sense inside the API.
    register_jobs(scheduler, schedules=True, metrics=False)
    scheduler.start()
    if settings.jobs_run_on_startup:
        logger.info("Running jobs once on startup")
        run_schedule_job()

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=True)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        _wait_forever(stop_event)
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def register_jobs(scheduler: BackgroundScheduler, *, schedules: bool = True, metrics: bool = True) -> None:
    if schedules:
        scheduler.add_job(
            run_schedule_job,
            trigger="interval",
            seconds=max(1, settings.schedule_poll_interval_seconds),
            id=SCHEDULE_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
    if metrics:
        scheduler.add_job(
            run_metrics_job,
            trigger="interval",
            seconds=effective_sample_interval(),
            id=METRICS_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
    logger.info(
        "Registered jobs (tz=%s): schedules=%s every %ss, metrics=%s every %ss",
        settings.scheduler_timezone,
        schedules,
        settings.schedule_poll_interval_seconds,
        metrics,
        effective_sample_interval(),
    )


def run_schedule_job() -> None:
    _execute_job(
        job_name="schedule_runner",
        runner=execute_due_schedules,
        scheduled_run_time=datetime.now(timezone.utc),
    )


def run_metrics_job() -> None:
    _execute_job(
        job_name="metrics_sampler",
        runner=run_metrics_sampling,
        scheduled_run_time=datetime.now(timezone.utc),
    )


def _execute_job(job_name: str, runner, scheduled_run_time=None) -> bool:
    session = SessionLocal()
    start = perf_counter()
    scheduled_str = scheduled_run_time.isoformat() if scheduled_run_time else None
    metadata = {"job": job_name, "scheduled_run_time": scheduled_str}
    logger.debug("Job %s starting (scheduled_run_time=%s)", job_name, scheduled_str or "now")

    stats = {}
    success = 0
    try:
        with trace(f"jobs.{job_name}", metadata=metadata):
            result = runner(session)
            stats = asdict(result)
            success = 1
    except Exception:
        logger.exception("Job %s failed", job_name)
    finally:
        session.close()

    duration_ms = (perf_counter() - start) * 1000
    log_metric("jobs.success", success, metadata={"job": job_name})
    log_metric("jobs.duration_ms", duration_ms, metadata={"job": job_name})
    for name, value in stats.items():
        log_metric(f"jobs.{name}", value, metadata={"job": job_name})

    if success:
        logger.debug("Job %s complete: %s duration_ms=%0.2f", job_name, stats, duration_ms)
    return bool(success)


def _validate_config() -> None:
    if settings.schedule_poll_interval_seconds < 1:
        raise ValueError("SCHEDULE_POLL_INTERVAL_SECONDS must be >= 1")
    if settings.metrics_sample_interval_seconds < 1:
        raise ValueError("METRICS_SAMPLE_INTERVAL_SECONDS must be >= 1")
    if settings.metrics_max_samples < 2:
        raise ValueError("METRICS_MAX_SAMPLES must be >= 2")


def _wait_forever(stop_event: threading.Event) -> None:
    stop_event.wait()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
