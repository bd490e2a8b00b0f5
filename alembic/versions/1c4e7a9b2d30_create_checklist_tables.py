"""create_checklist_tables

Revision ID: 1c4e7a9b2d30
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "1c4e7a9b2d30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_projects_name"), "projects", ["name"], unique=False)

    op.create_table(
        "task_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("factor_id", sa.String(length=64), nullable=False),
        sa.Column("stage", sa.String(length=32), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.CheckConstraint('"order" >= 0', name="ck_task_templates_order_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("factor_id", "stage", name="uq_task_templates_component"),
    )
    op.create_index(
        op.f("ix_task_templates_factor_id"), "task_templates", ["factor_id"], unique=False
    )
    op.create_index(op.f("ix_task_templates_stage"), "task_templates", ["stage"], unique=False)

    op.create_table(
        "project_tasks",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("origin", sa.String(length=32), nullable=False),
        sa.Column("source_id", sa.String(length=64), nullable=True),
        sa.Column("stage", sa.String(length=32), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "origin <> 'template' OR source_id IS NOT NULL",
            name="ck_project_tasks_template_has_source",
        ),
        sa.ForeignKeyConstraint(
            ["project_id"],
            ["projects.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_project_tasks_template_identity",
        "project_tasks",
        ["project_id", "source_id", "stage"],
        unique=True,
        sqlite_where=sa.text("origin = 'template'"),
        postgresql_where=sa.text("origin = 'template'"),
    )
    op.create_index(
        op.f("ix_project_tasks_project_id"), "project_tasks", ["project_id"], unique=False
    )
    op.create_index(op.f("ix_project_tasks_origin"), "project_tasks", ["origin"], unique=False)
    op.create_index(op.f("ix_project_tasks_status"), "project_tasks", ["status"], unique=False)
    op.create_index(
        "ix_project_tasks_project_stage",
        "project_tasks",
        ["project_id", "stage"],
        unique=False,
    )
    op.create_index(
        "ix_project_tasks_project_source",
        "project_tasks",
        ["project_id", "source_id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_project_tasks_project_source", table_name="project_tasks")
    op.drop_index("ix_project_tasks_project_stage", table_name="project_tasks")
    op.drop_index(op.f("ix_project_tasks_status"), table_name="project_tasks")
    op.drop_index(op.f("ix_project_tasks_origin"), table_name="project_tasks")
    op.drop_index(op.f("ix_project_tasks_project_id"), table_name="project_tasks")
    op.drop_index("uq_project_tasks_template_identity", table_name="project_tasks")
    op.drop_table("project_tasks")
    op.drop_index(op.f("ix_task_templates_stage"), table_name="task_templates")
    op.drop_index(op.f("ix_task_templates_factor_id"), table_name="task_templates")
    op.drop_table("task_templates")
    op.drop_index(op.f("ix_projects_name"), table_name="projects")
    op.drop_table("projects")
