"""add reminders table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_reminders"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reminders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=10), nullable=False, server_default="IN_APP"),
        sa.Column("fire_at", sa.DateTime(), nullable=False),
        sa.Column("relative_offset", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=10), nullable=False, server_default="PENDING"),
        sa.Column("snoozed_until", sa.DateTime(), nullable=True),
        sa.Column("snooze_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_reminders_task_id", "reminders", ["task_id"], unique=False)
    op.create_index("ix_reminders_fire_at", "reminders", ["fire_at"], unique=False)
    op.create_index("ix_reminders_status", "reminders", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_reminders_status", table_name="reminders")
    op.drop_index("ix_reminders_fire_at", table_name="reminders")
    op.drop_index("ix_reminders_task_id", table_name="reminders")
    op.drop_table("reminders")
