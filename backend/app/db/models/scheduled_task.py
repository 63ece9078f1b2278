"""Scheduled range generation ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, func

from app.db.base import Base


class ScheduledTask(Base):
    __tablename__ = "scheduled_tasks"
    __table_args__ = (
        Index("ix_scheduled_tasks_due", "is_enabled", "next_execution_time"),
        Index("ix_scheduled_tasks_task_id", "task_id"),
    )

    schedule_id = Column(String(length=32), primary_key=True, default=lambda: uuid4().hex)
    # No foreign key: a schedule outlives its task and is disabled when the task is gone.
    task_id = Column(String(length=200), nullable=False)
    interval_seconds = Column(Integer, nullable=False)
    bulk_size_seconds = Column(Integer, nullable=False)
    last_execution_time = Column(DateTime(timezone=True), nullable=True)
    next_execution_time = Column(DateTime(timezone=True), nullable=True)
    is_enabled = Column(Boolean, nullable=False, server_default="true", default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_by = Column(String(length=200), nullable=False, server_default="system")
