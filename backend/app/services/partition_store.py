"""Persistence operations over the task_partitions table."""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import Select, delete, func, insert, select, update
from sqlalchemy.orm import Session

from app.db.models.task_partition import TaskPartition
from app.services.partition_slicer import PartitionSlice

logger = logging.getLogger(__name__)

BULK_INSERT_CHUNK_SIZE = 2000


@dataclass(frozen=True)
class PartitionKey:
    task_id: str
    time_from: datetime
    time_to: datetime
    range_id: Optional[str] = None


@dataclass(frozen=True)
class HistogramRow:
    time_from: datetime
    status: Optional[str]


def bulk_insert(db: Session, task_id: str, range_id: Optional[str], slices: Iterable[PartitionSlice]) -> int:
    """Insert partitions in bounded round-trips.

    Does not commit: atomicity comes from the caller's transaction, not the chunks.
    """
    inserted = 0
    chunk: List[dict] = []
    for item in slices:
        chunk.append(
            {
                "task_id": task_id,
                "range_id": range_id,
                "time_from": item.time_from,
                "time_to": item.time_to,
                "status": item.status.strip(),
            }
        )
        if len(chunk) >= BULK_INSERT_CHUNK_SIZE:
            inserted += _flush_chunk(db, chunk)
            chunk = []
    if chunk:
        inserted += _flush_chunk(db, chunk)
    return inserted


def _flush_chunk(db: Session, rows: List[dict]) -> int:
    db.execute(insert(TaskPartition), rows)
    return len(rows)


def status_counts(db: Session, task_id: str) -> Dict[str, int]:
    rows = db.execute(
        select(TaskPartition.status, func.count())
        .where(TaskPartition.task_id == task_id)
        .group_by(TaskPartition.status)
    ).all()
    return {status: int(count) for status, count in rows}


def status_counts_for_tasks(db: Session, task_ids: Sequence[str]) -> Dict[str, Dict[str, int]]:
    if not task_ids:
        return {}
    rows = db.execute(
        select(TaskPartition.task_id, TaskPartition.status, func.count())
        .where(TaskPartition.task_id.in_(list(task_ids)))
        .group_by(TaskPartition.task_id, TaskPartition.status)
    ).all()
    counts: Dict[str, Dict[str, int]] = defaultdict(dict)
    for task_id, status, count in rows:
        counts[task_id][status] = int(count)
    return dict(counts)


def histogram_rows(
    db: Session,
    task_id: str,
    time_from: Optional[datetime] = None,
    time_to: Optional[datetime] = None,
) -> List[HistogramRow]:
    query = select(TaskPartition.time_from, TaskPartition.status).where(TaskPartition.task_id == task_id)
    if time_from is not None:
        query = query.where(TaskPartition.time_from >= time_from)
    if time_to is not None:
        query = query.where(TaskPartition.time_from < time_to)
    return [HistogramRow(time_from=row[0], status=row[1]) for row in db.execute(query).all()]


def list_partitions(db: Session, task_id: str, skip: int, take: int) -> List[TaskPartition]:
    return list(
        db.scalars(
            select(TaskPartition)
            .where(TaskPartition.task_id == task_id)
            .order_by(TaskPartition.time_from, TaskPartition.time_to)
            .offset(skip)
            .limit(take)
        )
    )


def delete_by_task(db: Session, task_id: str) -> int:
    result = db.execute(
        delete(TaskPartition).where(TaskPartition.task_id == task_id).execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def delete_by_range(db: Session, task_id: str, range_id: str) -> int:
    result = db.execute(
        delete(TaskPartition)
        .where(TaskPartition.task_id == task_id, TaskPartition.range_id == range_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def first_with_status_query(task_id: str, status: str) -> Select:
    # Shaped to be answered from ix_task_partitions_claim without a sort.
    return (
        select(TaskPartition.task_id, TaskPartition.time_from, TaskPartition.time_to, TaskPartition.range_id)
        .where(TaskPartition.task_id == task_id, func.lower(TaskPartition.status) == status.lower())
        .order_by(TaskPartition.time_from, TaskPartition.time_to)
        .limit(1)
    )


def find_first_with_status(db: Session, task_id: str, status: str) -> Optional[PartitionKey]:
    """Lowest-ordered partition (start, then end) currently in ``status``."""
    row = db.execute(first_with_status_query(task_id, status)).first()
    if row is None:
        return None
    return PartitionKey(task_id=row[0], time_from=row[1], time_to=row[2], range_id=row[3])


def compare_and_set_status(db: Session, key: PartitionKey, expected_status: str, new_status: str) -> bool:
    """Set ``new_status`` only if the row still has ``expected_status``; True when this call won."""
    result = db.execute(
        update(TaskPartition)
        .where(
            TaskPartition.task_id == key.task_id,
            TaskPartition.time_from == key.time_from,
            TaskPartition.time_to == key.time_to,
            func.lower(TaskPartition.status) == expected_status.lower(),
        )
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
