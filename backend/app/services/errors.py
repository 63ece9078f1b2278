"""Service-level error types mapped to HTTP statuses by the routes."""
from __future__ import annotations


class PartitionTrackerError(ValueError):
    """Base class for errors surfaced to callers."""


class ValidationError(PartitionTrackerError):
    """Caller supplied an invalid value (400)."""


class InvalidRangeError(ValidationError):
    """Range end is not after its start."""


class InvalidSliceSizeError(ValidationError):
    """Partition size is not a positive number of seconds."""


class NotFoundError(PartitionTrackerError):
    """Referenced task or schedule does not exist (404)."""


class ConflictError(PartitionTrackerError):
    """Write collides with existing data (409)."""
