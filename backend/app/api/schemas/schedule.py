"""Schemas for scheduled range generation."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ScheduleCreateRequest(BaseModel):
    task_id: str
    interval_seconds: int
    bulk_size_seconds: int
    first_execution_time: Optional[datetime] = None
    created_by: Optional[str] = Field(default=None, max_length=200)


class ScheduleUpdateRequest(BaseModel):
    interval_seconds: Optional[int] = None
    bulk_size_seconds: Optional[int] = None
    is_enabled: Optional[bool] = None


class ScheduleResponse(BaseModel):
    schedule_id: str
    task_id: str
    interval_seconds: int
    bulk_size_seconds: int
    last_execution_time: Optional[datetime]
    next_execution_time: Optional[datetime]
    is_enabled: bool
    created_at: datetime
    created_by: str


class ScheduleRunResponse(BaseModel):
    schedules_due: int
    executed: int
    disabled: int
    skipped: int
    failed: int
    request_id: str
