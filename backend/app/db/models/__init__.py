"""ORM models exposed for metadata discovery."""
from app.db.models.scheduled_task import ScheduledTask
from app.db.models.task import Task
from app.db.models.task_partition import TaskPartition
from app.db.models.task_time_range import TaskTimeRange

__all__ = [
    "ScheduledTask",
    "Task",
    "TaskPartition",
    "TaskTimeRange",
]
