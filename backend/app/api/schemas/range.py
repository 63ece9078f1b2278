"""Schemas for task time ranges."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TaskRangeInput(BaseModel):
    time_from: datetime
    time_to: datetime


class RangeCreateRequest(TaskRangeInput):
    created_by: Optional[str] = Field(default=None, max_length=200)


class TaskRange(BaseModel):
    range_id: str
    time_from: datetime
    time_to: datetime
    creation_time: datetime
    created_by: str
