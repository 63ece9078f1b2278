"""Schemas for partitions and claims."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PartitionPayload(BaseModel):
    task_id: str
    range_id: Optional[str]
    time_from: datetime
    time_to: datetime
    status: str


class ClaimedPartition(PartitionPayload):
    request_id: str
