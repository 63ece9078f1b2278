"""Task ORM model."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from app.db.base import Base


class Task(Base):
    __tablename__ = "tasks"

    task_id = Column(String(length=200), primary_key=True)
    description = Column(Text, nullable=False, server_default="")
    created_by = Column(String(length=200), nullable=False, server_default="")
    last_update = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    partition_size_seconds = Column(Integer, nullable=True)
