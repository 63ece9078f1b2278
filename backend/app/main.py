"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request

from app.api.routes import health, partition, schedule, task, user
from app.api.routes import range as range_routes
from app.core.config import settings
from app.core.logging import configure_logging
from app.observability.client import flush_opik, init_opik
from app.worker.scheduler_main import register_jobs

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(log_level=settings.log_level)
    init_opik()

    scheduler = None
    if settings.scheduler_enabled or settings.metrics_enabled:
        scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)
        register_jobs(scheduler, schedules=settings.scheduler_enabled, metrics=settings.metrics_enabled)
        scheduler.start()
        logger.info(
            "Background jobs started (schedules=%s, metrics=%s)",
            settings.scheduler_enabled,
            settings.metrics_enabled,
        )
    app.state.scheduler = scheduler

    yield

    if scheduler is not None and scheduler.running:
        # Let an in-flight tick finish before the engine goes away.
        scheduler.shutdown(wait=True)
    flush_opik()
    logger.info("%s stopped", settings.app_name)


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.include_router(health.router)
app.include_router(task.router)
app.include_router(range_routes.router)
app.include_router(partition.router)
app.include_router(schedule.router)
app.include_router(user.router)
