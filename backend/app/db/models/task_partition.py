"""Task partition ORM model."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, func

from app.db.base import Base

CLAIM_INDEX_NAME = "ix_task_partitions_claim"


class TaskPartition(Base):
    __tablename__ = "task_partitions"
    __table_args__ = (
        Index("ix_task_partitions_task_status", "task_id", "status"),
        Index("ix_task_partitions_range_id", "range_id"),
    )

    # (task_id, time_from, time_to) is the natural key used by the claim compare-and-set.
    task_id = Column(String(length=200), ForeignKey("tasks.task_id"), primary_key=True)
    time_from = Column(DateTime(timezone=True), primary_key=True)
    time_to = Column(DateTime(timezone=True), primary_key=True)
    range_id = Column(String(length=32), nullable=True)
    status = Column(String(length=50), nullable=False)


# Claims match status case-insensitively and take the earliest slot.
Index(
    CLAIM_INDEX_NAME,
    TaskPartition.task_id,
    func.lower(TaskPartition.status),
    TaskPartition.time_from,
    TaskPartition.time_to,
)
