from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import or_
from sqlmodel import Session, col, select

from checklist.db.enums import TaskOrigin, TaskStage, TaskStatus
from checklist.db.models import (
    TEMPLATE_ROW_PREDICATE,
    ProjectTask,
    generate_task_id,
    utc_now,
)
from checklist.db.repositories.common import insert_if_absent, stage_rank

TEMPLATE_IDENTITY_COLUMNS: tuple[str, ...] = ("project_id", "source_id", "stage")


@dataclass(frozen=True, slots=True)
class TaskFilters:
    origin: TaskOrigin | None = None
    stage: TaskStage | None = None
    completed: bool | None = None


class ProjectTaskRepository:
    """Every query here filters by project, except :meth:`find_owner_project`."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @staticmethod
    def _checklist_order() -> tuple[Any, ...]:
        return (
            stage_rank(ProjectTask.stage),
            col(ProjectTask.order),
            col(ProjectTask.created_at),
            col(ProjectTask.id),
        )

    def add(self, task: ProjectTask) -> ProjectTask:
        self.session.add(task)
        self.session.flush()
        return task

    def get_in_project(self, *, project_id: int, task_id: str) -> ProjectTask | None:
        statement = (
            select(ProjectTask)
            .where(ProjectTask.project_id == project_id)
            .where(ProjectTask.id == task_id)
        )
        return self.session.exec(statement).first()

    def find_owner_project(self, task_id: str) -> int | None:
        """Owning project of an id, for reporting boundary violations only."""
        statement = select(ProjectTask.project_id).where(ProjectTask.id == task_id)
        return self.session.exec(statement).first()

    def list_for_project(
        self,
        project_id: int,
        *,
        filters: TaskFilters | None = None,
    ) -> list[ProjectTask]:
        active_filters = filters or TaskFilters()
        statement = select(ProjectTask).where(ProjectTask.project_id == project_id)
        if active_filters.origin is not None:
            statement = statement.where(ProjectTask.origin == active_filters.origin.value)
        if active_filters.stage is not None:
            statement = statement.where(ProjectTask.stage == active_filters.stage.value)
        if active_filters.completed is not None:
            statement = statement.where(ProjectTask.completed == active_filters.completed)
        statement = statement.order_by(*self._checklist_order())
        return list(self.session.exec(statement).all())

    def find_by_source(
        self,
        *,
        project_id: int,
        source_id: str,
        stage: TaskStage | None = None,
    ) -> list[ProjectTask]:
        statement = (
            select(ProjectTask)
            .where(ProjectTask.project_id == project_id)
            .where(ProjectTask.source_id == source_id)
        )
        if stage is not None:
            statement = statement.where(ProjectTask.stage == stage.value)
        template_first = col(ProjectTask.origin) != TaskOrigin.TEMPLATE.value
        statement = statement.order_by(template_first, *self._checklist_order())
        return list(self.session.exec(statement).all())

    def find_by_prefix(
        self,
        *,
        project_id: int,
        prefix: str,
        limit: int = 20,
    ) -> list[ProjectTask]:
        template_first = col(ProjectTask.origin) != TaskOrigin.TEMPLATE.value
        statement = (
            select(ProjectTask)
            .where(ProjectTask.project_id == project_id)
            .where(
                or_(
                    col(ProjectTask.id).startswith(prefix, autoescape=True),
                    col(ProjectTask.source_id).startswith(prefix, autoescape=True),
                )
            )
            .order_by(template_first, *self._checklist_order())
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def get_template_task(
        self,
        *,
        project_id: int,
        source_id: str,
        stage: TaskStage,
    ) -> ProjectTask | None:
        statement = (
            select(ProjectTask)
            .where(ProjectTask.project_id == project_id)
            .where(ProjectTask.origin == TaskOrigin.TEMPLATE.value)
            .where(ProjectTask.source_id == source_id)
            .where(ProjectTask.stage == stage.value)
        )
        return self.session.exec(statement).first()

    def insert_template_task_if_absent(
        self,
        *,
        project_id: int,
        source_id: str,
        stage: TaskStage,
        text: str,
        order: int,
        extra_values: dict[str, Any] | None = None,
    ) -> bool:
        """Conditionally insert the template row for (project, source, stage).

        Returns False when another writer already holds that identity.
        """
        now = utc_now()
        values: dict[str, Any] = {
            "id": generate_task_id(),
            "project_id": project_id,
            "origin": TaskOrigin.TEMPLATE.value,
            "source_id": source_id,
            "stage": stage.value,
            "text": text,
            "completed": False,
            "status": TaskStatus.PENDING.value,
            "order": order,
            "created_at": now,
            "updated_at": now,
        }
        if extra_values:
            values.update(extra_values)
        return insert_if_absent(
            self.session,
            ProjectTask.__table__,  # type: ignore[arg-type]
            values,
            conflict_columns=TEMPLATE_IDENTITY_COLUMNS,
            conflict_where=TEMPLATE_ROW_PREDICATE,
        )

    def delete(self, task: ProjectTask) -> None:
        self.session.delete(task)
        self.session.flush()

    def delete_many(self, tasks: Sequence[ProjectTask]) -> int:
        for task in tasks:
            self.session.delete(task)
        self.session.flush()
        return len(tasks)
