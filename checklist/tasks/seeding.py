from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session

from checklist.core.logging import get_logger
from checklist.db.enums import TaskOrigin, TaskStage
from checklist.db.models import ProjectTask
from checklist.db.repositories import (
    ProjectRepository,
    ProjectTaskRepository,
    TaskFilters,
    TaskTemplateCatalog,
)
from checklist.tasks.cache import ResolutionCache
from checklist.tasks.errors import ProjectNotFoundError, UpdateConflictError

logger = get_logger("checklist.tasks.seeding")

# SQLite reports lock-upgrade deadlocks as OperationalError without waiting.
SEED_MAX_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class SeedResult:
    tasks: list[ProjectTask]
    created_count: int


class TemplateTaskSeeder:
    """Guarantees one instantiated task per catalog component per project.

    Inserts are conditional on the template (project, source, stage) unique
    index, so concurrent seeders converge on the first writer's rows.
    """

    def __init__(self, session: Session, *, cache: ResolutionCache | None = None) -> None:
        self.session = session
        self._projects = ProjectRepository(session)
        self._tasks = ProjectTaskRepository(session)
        self._catalog = TaskTemplateCatalog(session)
        self._cache = cache

    def ensure_template_tasks(self, project_id: int) -> SeedResult:
        if not self._projects.exists(project_id):
            raise ProjectNotFoundError(project_id)

        created_count = 0
        for attempt in range(1, SEED_MAX_ATTEMPTS + 1):
            try:
                created_count = self._insert_missing(project_id)
                self.session.commit()
                break
            except OperationalError as exc:
                self.session.rollback()
                if attempt == SEED_MAX_ATTEMPTS:
                    raise UpdateConflictError(
                        "Seeding template tasks failed.",
                        details={"projectId": project_id, "attempts": attempt},
                    ) from exc
                logger.info("task.seed_retry", project_id=project_id, attempt=attempt)
            except SQLAlchemyError as exc:
                self.session.rollback()
                raise UpdateConflictError(
                    "Seeding template tasks failed.",
                    details={"projectId": project_id},
                ) from exc

        # A new row can shadow a cached sourceId or prefix resolution.
        if created_count and self._cache is not None:
            self._cache.invalidate_project(project_id)

        tasks = self._tasks.list_for_project(project_id)
        if created_count:
            logger.info("task.seeded", project_id=project_id, created_count=created_count)
        return SeedResult(tasks=tasks, created_count=created_count)

    def _insert_missing(self, project_id: int) -> int:
        existing = {
            (task.source_id, str(task.stage))
            for task in self._tasks.list_for_project(
                project_id,
                filters=TaskFilters(origin=TaskOrigin.TEMPLATE),
            )
        }
        created_count = 0
        for template in self._catalog.list_all():
            key = (template.factor_id, str(template.stage))
            if key in existing:
                continue
            inserted = self._tasks.insert_template_task_if_absent(
                project_id=project_id,
                source_id=template.factor_id,
                stage=TaskStage(template.stage),
                text=template.text,
                order=template.order,
            )
            if inserted:
                created_count += 1
            else:
                logger.info(
                    "task.seed_race_lost",
                    project_id=project_id,
                    source_id=template.factor_id,
                    stage=str(template.stage),
                )
            existing.add(key)
        return created_count


def ensure_template_tasks(
    session: Session,
    project_id: int,
    *,
    cache: ResolutionCache | None = None,
) -> list[ProjectTask]:
    return TemplateTaskSeeder(session, cache=cache).ensure_template_tasks(project_id).tasks
