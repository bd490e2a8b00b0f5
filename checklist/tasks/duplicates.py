from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from checklist.core.logging import get_logger
from checklist.db.enums import TaskOrigin
from checklist.db.models import ProjectTask
from checklist.db.repositories import ProjectTaskRepository, TaskFilters
from checklist.tasks.errors import UpdateConflictError

logger = get_logger("checklist.tasks.duplicates")


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    project_id: int
    source_id: str
    stage: str
    task_ids: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.task_ids)


def find_duplicates(tasks: Iterable[ProjectTask]) -> list[DuplicateGroup]:
    """Group template tasks that share (project, sourceId, stage) more than once."""
    grouped: dict[tuple[int, str, str], list[ProjectTask]] = defaultdict(list)
    for task in tasks:
        if task.origin != TaskOrigin.TEMPLATE or task.source_id is None:
            continue
        grouped[(task.project_id, task.source_id, str(task.stage))].append(task)

    return [
        DuplicateGroup(
            project_id=project_id,
            source_id=source_id,
            stage=stage,
            task_ids=[task.id for task in members],
        )
        for (project_id, source_id, stage), members in sorted(grouped.items())
        if len(members) > 1
    ]


def _keeper(members: list[ProjectTask]) -> ProjectTask:
    # Completed rows carry user progress; otherwise the first instantiation wins.
    return min(members, key=lambda task: (not task.completed, task.created_at, task.id))


def remove_duplicates(session: Session, project_id: int) -> list[DuplicateGroup]:
    """Delete all but one row of each duplicate group and return the groups found."""
    tasks = ProjectTaskRepository(session)
    rows = tasks.list_for_project(project_id, filters=TaskFilters(origin=TaskOrigin.TEMPLATE))
    by_id = {row.id: row for row in rows}
    groups = find_duplicates(rows)
    if not groups:
        return []

    doomed: list[ProjectTask] = []
    for group in groups:
        members = [by_id[task_id] for task_id in group.task_ids]
        keeper = _keeper(members)
        doomed.extend(member for member in members if member.id != keeper.id)
    try:
        deleted = tasks.delete_many(doomed)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise UpdateConflictError(
            "Removing duplicate tasks failed.",
            details={"projectId": project_id},
        ) from exc

    logger.warning(
        "task.duplicates_removed",
        project_id=project_id,
        group_count=len(groups),
        deleted_count=deleted,
    )
    return groups
