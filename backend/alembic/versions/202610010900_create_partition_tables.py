"""create tasks, ranges, partitions and schedules"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "202610010900"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tasks",
        sa.Column("task_id", sa.String(length=200), primary_key=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_by", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("partition_size_seconds", sa.Integer(), nullable=True),
    )

    op.create_table(
        "task_time_ranges",
        sa.Column("range_id", sa.String(length=32), primary_key=True),
        sa.Column("task_id", sa.String(length=200), sa.ForeignKey("tasks.task_id"), nullable=False),
        sa.Column("time_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time_to", sa.DateTime(timezone=True), nullable=False),
        sa.Column("creation_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(length=200), nullable=False, server_default=""),
        sa.UniqueConstraint("task_id", "time_from", "time_to", name="uq_task_time_ranges_identity"),
    )
    op.create_index("ix_task_time_ranges_task_id", "task_time_ranges", ["task_id"])

    op.create_table(
        "task_partitions",
        sa.Column("task_id", sa.String(length=200), sa.ForeignKey("tasks.task_id"), primary_key=True),
        sa.Column("time_from", sa.DateTime(timezone=True), primary_key=True),
        sa.Column("time_to", sa.DateTime(timezone=True), primary_key=True),
        sa.Column("range_id", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
    )
    op.create_index("ix_task_partitions_task_status", "task_partitions", ["task_id", "status"])
    op.create_index("ix_task_partitions_range_id", "task_partitions", ["range_id"])
    op.create_index(
        "ix_task_partitions_claim",
        "task_partitions",
        ["task_id", sa.text("lower(status)"), "time_from", "time_to"],
    )

    op.create_table(
        "scheduled_tasks",
        sa.Column("schedule_id", sa.String(length=32), primary_key=True),
        sa.Column("task_id", sa.String(length=200), nullable=False),
        sa.Column("interval_seconds", sa.Integer(), nullable=False),
        sa.Column("bulk_size_seconds", sa.Integer(), nullable=False),
        sa.Column("last_execution_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_execution_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(length=200), nullable=False, server_default="system"),
    )
    op.create_index("ix_scheduled_tasks_due", "scheduled_tasks", ["is_enabled", "next_execution_time"])
    op.create_index("ix_scheduled_tasks_task_id", "scheduled_tasks", ["task_id"])


def downgrade() -> None:
    op.drop_index("ix_scheduled_tasks_task_id", table_name="scheduled_tasks")
    op.drop_index("ix_scheduled_tasks_due", table_name="scheduled_tasks")
    op.drop_table("scheduled_tasks")
    op.drop_index("ix_task_partitions_claim", table_name="task_partitions")
    op.drop_index("ix_task_partitions_range_id", table_name="task_partitions")
    op.drop_index("ix_task_partitions_task_status", table_name="task_partitions")
    op.drop_table("task_partitions")
    op.drop_index("ix_task_time_ranges_task_id", table_name="task_time_ranges")
    op.drop_table("task_time_ranges")
    op.drop_table("tasks")
