"""Schemas for task creation and listing."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.api.schemas.progress import TaskProgress
from app.api.schemas.range import TaskRangeInput


class TaskCreateRequest(BaseModel):
    task_id: str = Field(..., max_length=200)
    description: Optional[str] = None
    created_by: Optional[str] = Field(default=None, max_length=200)
    ranges: List[TaskRangeInput] = Field(default_factory=list)
    partition_minutes: Optional[int] = None
    partition_size_seconds: Optional[int] = None


class TaskCreateResponse(BaseModel):
    task_id: str
    request_id: str


class TaskSummary(BaseModel):
    task_id: str
    description: str
    created_by: str
    last_update: datetime
    partition_size_seconds: Optional[int]
    type: str
    progress: Optional[TaskProgress] = None
