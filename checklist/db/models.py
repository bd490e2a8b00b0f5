from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlmodel import Field, SQLModel

from checklist.db.enums import TaskOrigin, TaskStage, TaskStatus

TEMPLATE_ROW_PREDICATE = text("origin = 'template'")


def utc_now() -> datetime:
    return datetime.now(UTC)


def generate_task_id() -> str:
    return str(uuid4())


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(length=120), nullable=False, index=True))
    created_at: datetime = Field(default_factory=utc_now, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)


class TaskTemplate(SQLModel, table=True):
    """A catalog entry shared by every project; one per (factor_id, stage)."""

    __tablename__ = "task_templates"
    __table_args__ = (
        UniqueConstraint("factor_id", "stage", name="uq_task_templates_component"),
        CheckConstraint('"order" >= 0', name="ck_task_templates_order_non_negative"),
    )

    id: int | None = Field(default=None, primary_key=True)
    factor_id: str = Field(sa_column=Column(String(length=64), nullable=False, index=True))
    stage: TaskStage = Field(sa_column=Column(String(length=32), nullable=False, index=True))
    order: int = Field(default=0, sa_column=Column("order", Integer(), nullable=False, default=0))
    text: str = Field(sa_column=Column(Text(), nullable=False))


class ProjectTask(SQLModel, table=True):
    __tablename__ = "project_tasks"
    __table_args__ = (
        # Only template rows carry catalog identity; custom rows may repeat a sourceId.
        Index(
            "uq_project_tasks_template_identity",
            "project_id",
            "source_id",
            "stage",
            unique=True,
            sqlite_where=TEMPLATE_ROW_PREDICATE,
            postgresql_where=TEMPLATE_ROW_PREDICATE,
        ),
        CheckConstraint(
            "origin <> 'template' OR source_id IS NOT NULL",
            name="ck_project_tasks_template_has_source",
        ),
        Index("ix_project_tasks_project_stage", "project_id", "stage"),
        Index("ix_project_tasks_project_source", "project_id", "source_id"),
    )

    id: str = Field(
        default_factory=generate_task_id,
        sa_column=Column(String(length=64), primary_key=True),
    )
    project_id: int = Field(foreign_key="projects.id", nullable=False, index=True)
    origin: TaskOrigin = Field(
        default=TaskOrigin.CUSTOM,
        sa_column=Column(String(length=32), nullable=False, index=True),
    )
    source_id: str | None = Field(
        default=None,
        sa_column=Column(String(length=64), nullable=True),
    )
    stage: TaskStage = Field(sa_column=Column(String(length=32), nullable=False))
    text: str = Field(sa_column=Column(Text(), nullable=False))
    completed: bool = Field(
        default=False,
        sa_column=Column(Boolean(), nullable=False, default=False),
    )
    status: TaskStatus = Field(
        default=TaskStatus.PENDING,
        sa_column=Column(String(length=32), nullable=False, index=True),
    )
    order: int = Field(default=0, sa_column=Column("order", Integer(), nullable=False, default=0))
    created_at: datetime = Field(default_factory=utc_now, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)
