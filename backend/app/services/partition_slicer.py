"""Deterministic slicing of a time range into fixed-size partitions."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator

from app.services.errors import InvalidRangeError, InvalidSliceSizeError


@dataclass(frozen=True)
class PartitionSlice:
    time_from: datetime
    time_to: datetime
    status: str


@dataclass(frozen=True)
class SlicePlan:
    """Re-iterable sequence of partitions covering ``[time_from, time_to)``.

    Every partition is ``slice_seconds`` long except the last one, which is
    truncated at ``time_to``. Iterating twice yields the same partitions.
    """

    time_from: datetime
    time_to: datetime
    slice_seconds: int
    status: str

    def __iter__(self) -> Iterator[PartitionSlice]:
        step = timedelta(seconds=self.slice_seconds)
        cursor = self.time_from
        while cursor < self.time_to:
            nxt = min(cursor + step, self.time_to)
            yield PartitionSlice(time_from=cursor, time_to=nxt, status=self.status)
            cursor = nxt

    def __len__(self) -> int:
        return expected_slice_count(self.time_from, self.time_to, self.slice_seconds)


def validate_range(time_from: datetime, time_to: datetime) -> None:
    if time_to <= time_from:
        raise InvalidRangeError("time_to must be after time_from")


def validate_slice_size(slice_seconds: int | None) -> None:
    if slice_seconds is None or slice_seconds <= 0:
        raise InvalidSliceSizeError("partition size must be greater than zero seconds")


def slice_range(time_from: datetime, time_to: datetime, slice_seconds: int, status: str) -> SlicePlan:
    """Validate the inputs and return the partition plan for one range."""
    validate_range(time_from, time_to)
    validate_slice_size(slice_seconds)
    return SlicePlan(time_from=time_from, time_to=time_to, slice_seconds=int(slice_seconds), status=status)


def expected_slice_count(time_from: datetime, time_to: datetime, slice_seconds: int | None) -> int:
    """Number of partitions a range yields; 0 for empty or inverted ranges."""
    if slice_seconds is None or slice_seconds <= 0:
        return 0
    duration = (time_to - time_from).total_seconds()
    if duration <= 0:
        return 0
    return math.ceil(duration / slice_seconds)
