"""create allocation tables

Revision ID: 3c1f0d9a7b21
Revises:
Create Date: 2026-03-02 10:14:08.211904

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0d9a7b21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("dept", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("code", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(), nullable=False, server_default=""),
        sa.Column("client", sa.String(), nullable=False, server_default=""),
        sa.Column("category", sa.String(), nullable=False, server_default="project"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_projects_id", "projects", ["id"], unique=False)
    op.create_index("ix_projects_code", "projects", ["code"], unique=False)

    op.create_table(
        "tasks",
        sa.Column("task_id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("task_name", sa.String(), nullable=False),
        sa.Column("task_dept", sa.String(), nullable=True),
    )
    op.create_index("ix_tasks_task_id", "tasks", ["task_id"], unique=False)
    op.create_index("ix_tasks_task_name", "tasks", ["task_name"], unique=False)

    op.create_table(
        "user_projects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("allocation_hours", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "allocation_hours >= 0 AND allocation_hours <= 160",
            name="ck_user_projects_allocation_hours",
        ),
        sa.CheckConstraint("start_date <= end_date", name="ck_user_projects_date_order"),
    )
    op.create_index("ix_user_projects_id", "user_projects", ["id"], unique=False)
    op.create_index("ix_user_projects_user_id", "user_projects", ["user_id"], unique=False)
    op.create_index("ix_user_projects_project_id", "user_projects", ["project_id"], unique=False)
    op.create_index(
        "ix_user_projects_user_date_range",
        "user_projects",
        ["user_id", "start_date", "end_date"],
        unique=False,
    )

    op.create_table(
        "time_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=False),
        sa.Column("user_name", sa.String(), nullable=True),
        sa.Column("user_dept", sa.String(), nullable=True),
        sa.Column("user_email", sa.String(), nullable=True),
        sa.Column("project_name", sa.String(), nullable=True),
        sa.Column("project_code", sa.Integer(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("remarks", sa.String(), nullable=True),
        sa.Column("client", sa.String(), nullable=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_time_entries_id", "time_entries", ["id"], unique=False)
    op.create_index("ix_time_entries_task_id", "time_entries", ["task_id"], unique=False)
    op.create_index("ix_time_entries_user_name", "time_entries", ["user_name"], unique=False)
    op.create_index("ix_time_entries_user_email", "time_entries", ["user_email"], unique=False)
    op.create_index("ix_time_entries_project_code", "time_entries", ["project_code"], unique=False)
    op.create_index("ix_time_entries_entry_date", "time_entries", ["entry_date"], unique=False)
    op.create_index(
        "ix_time_entries_user_task_date",
        "time_entries",
        ["user_email", "task_id", "entry_date"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("time_entries")
    op.drop_table("user_projects")
    op.drop_table("tasks")
    op.drop_table("projects")
    op.drop_table("users")
