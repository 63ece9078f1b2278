"""Task time range ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint, func

from app.db.base import Base


def new_range_id() -> str:
    return uuid4().hex


class TaskTimeRange(Base):
    __tablename__ = "task_time_ranges"
    __table_args__ = (
        UniqueConstraint("task_id", "time_from", "time_to", name="uq_task_time_ranges_identity"),
        Index("ix_task_time_ranges_task_id", "task_id"),
    )

    range_id = Column(String(length=32), primary_key=True, default=new_range_id)
    task_id = Column(String(length=200), ForeignKey("tasks.task_id"), nullable=False)
    time_from = Column(DateTime(timezone=True), nullable=False)
    time_to = Column(DateTime(timezone=True), nullable=False)
    creation_time = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_by = Column(String(length=200), nullable=False, server_default="")
