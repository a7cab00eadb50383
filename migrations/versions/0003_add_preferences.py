"""add preferences table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_preferences"
down_revision = "0002_add_reminders"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "preferences",
        sa.Column("key", sa.String(length=100), primary_key=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("preferences")
