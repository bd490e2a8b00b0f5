from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from checklist.core.logging import get_logger
from checklist.db.enums import TaskOrigin, TaskStage, TaskStatus
from checklist.db.models import ProjectTask, utc_now
from checklist.db.repositories import ProjectRepository, ProjectTaskRepository, TaskTemplateCatalog
from checklist.tasks.cache import ResolutionCache
from checklist.tasks.errors import (
    InvalidTaskPayloadError,
    ProjectBoundaryViolationError,
    ProjectNotFoundError,
    TaskDomainError,
    TaskNotFoundError,
    UpdateConflictError,
)
from checklist.tasks.identifiers import canonicalize, is_template_addressable, validate_identifier
from checklist.tasks.resolver import DEFAULT_PARTIAL_MATCH_MIN_LENGTH, TaskIdentityResolver

logger = get_logger("checklist.tasks.updates")

_NON_NULLABLE_PATCH_FIELDS: frozenset[str] = frozenset(
    {"text", "stage", "completed", "status", "order", "origin"}
)


class ChecklistModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class TaskPatch(ChecklistModel):
    """Partial update of a project task; only the listed fields are accepted."""

    text: str | None = Field(default=None, min_length=1, max_length=4000)
    stage: TaskStage | None = None
    completed: bool | None = None
    status: TaskStatus | None = None
    order: int | None = Field(default=None, ge=0)
    origin: TaskOrigin | None = None
    source_id: str | None = Field(default=None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def validate_patch(self) -> TaskPatch:
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided.")
        for field_name in sorted(self.model_fields_set & _NON_NULLABLE_PATCH_FIELDS):
            if getattr(self, field_name) is None:
                raise ValueError(f"{to_camel(field_name)} cannot be null.")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class TaskCreate(ChecklistModel):
    text: str = Field(min_length=1, max_length=4000)
    stage: TaskStage
    origin: TaskOrigin = Field(default=TaskOrigin.CUSTOM)
    source_id: str | None = Field(default=None, min_length=1, max_length=64)
    completed: bool = False
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    order: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_template_source(self) -> TaskCreate:
        if self.origin == TaskOrigin.TEMPLATE and self.source_id is None:
            raise ValueError("sourceId is required for template tasks.")
        return self


@dataclass(frozen=True, slots=True)
class UpdateOutcome:
    task: ProjectTask
    created: bool
    strategy: str | None = None


class TaskUpdateService:
    """Create, update, upsert and delete project tasks, each as one transaction."""

    def __init__(
        self,
        session: Session,
        *,
        cache: ResolutionCache | None = None,
        resolver: TaskIdentityResolver | None = None,
        partial_match_min_length: int = DEFAULT_PARTIAL_MATCH_MIN_LENGTH,
    ) -> None:
        self.session = session
        self._cache = cache
        self._resolver = resolver or TaskIdentityResolver(
            session,
            cache=cache,
            partial_match_min_length=partial_match_min_length,
        )
        self._projects = ProjectRepository(session)
        self._tasks = ProjectTaskRepository(session)
        self._catalog = TaskTemplateCatalog(session)

    def update_task(self, project_id: int, identifier: str, patch: TaskPatch) -> UpdateOutcome:
        normalized = validate_identifier(identifier)
        self._require_project(project_id)
        try:
            resolution = self._resolver.resolve(normalized, project_id, stage=patch.stage)
            if resolution is not None:
                task = resolution.task
                if task.project_id != project_id:
                    raise ProjectBoundaryViolationError(
                        identifier=normalized,
                        requested_project_id=project_id,
                    )
                self._apply_patch(task, patch)
                self.session.flush()
                outcome = UpdateOutcome(task=task, created=False, strategy=resolution.strategy)
            else:
                if self._resolver.find_foreign_owner(normalized, project_id) is not None:
                    raise ProjectBoundaryViolationError(
                        identifier=normalized,
                        requested_project_id=project_id,
                    )
                outcome = self._upsert_template_task(project_id, normalized, patch)
            self.session.commit()
        except TaskDomainError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpdateConflictError(
                "Task update could not be written.",
                details={"identifier": normalized, "projectId": project_id},
            ) from exc

        self.session.refresh(outcome.task)
        self._invalidate(project_id, normalized, outcome.task.id, created=outcome.created)
        logger.info(
            "task.upserted" if outcome.created else "task.updated",
            project_id=project_id,
            identifier=normalized,
            task_id=outcome.task.id,
            strategy=outcome.strategy,
            fields=sorted(patch.model_fields_set),
        )
        return outcome

    def create_task(self, project_id: int, payload: TaskCreate) -> UpdateOutcome:
        self._require_project(project_id)
        try:
            if payload.origin == TaskOrigin.TEMPLATE:
                outcome = self._create_template_task(project_id, payload)
            else:
                task = ProjectTask(
                    project_id=project_id,
                    origin=TaskOrigin.CUSTOM,
                    source_id=payload.source_id,
                    stage=payload.stage,
                    text=payload.text,
                    completed=payload.completed,
                    status=payload.status,
                    order=payload.order,
                )
                self._tasks.add(task)
                outcome = UpdateOutcome(task=task, created=True)
            self.session.commit()
        except TaskDomainError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpdateConflictError(
                "Task could not be created.",
                details={"projectId": project_id, "sourceId": payload.source_id},
            ) from exc

        self.session.refresh(outcome.task)
        if outcome.created and self._cache is not None:
            self._cache.invalidate_project(project_id)
        logger.info(
            "task.created" if outcome.created else "task.create_existing",
            project_id=project_id,
            task_id=outcome.task.id,
            origin=str(outcome.task.origin),
        )
        return outcome

    def delete_task(self, project_id: int, identifier: str) -> bool:
        """Delete the resolved task. Returns False when it was already absent."""
        normalized = validate_identifier(identifier)
        self._require_project(project_id)
        try:
            resolution = self._resolver.resolve(normalized, project_id)
            if resolution is None:
                if self._resolver.find_foreign_owner(normalized, project_id) is not None:
                    raise ProjectBoundaryViolationError(
                        identifier=normalized,
                        requested_project_id=project_id,
                    )
                return False
            task_id = resolution.task.id
            self._tasks.delete(resolution.task)
            self.session.commit()
        except TaskDomainError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UpdateConflictError(
                "Task could not be deleted.",
                details={"identifier": normalized, "projectId": project_id},
            ) from exc

        self._invalidate(project_id, normalized, task_id, created=False)
        logger.info("task.deleted", project_id=project_id, identifier=normalized, task_id=task_id)
        return True

    def _require_project(self, project_id: int) -> None:
        if not self._projects.exists(project_id):
            raise ProjectNotFoundError(project_id)

    def _apply_patch(self, task: ProjectTask, patch: TaskPatch) -> None:
        for field_name, value in patch.changes().items():
            setattr(task, field_name, value)
        if task.origin == TaskOrigin.TEMPLATE and task.source_id is None:
            raise InvalidTaskPayloadError(
                "Template tasks require a sourceId.",
                details={"taskId": task.id},
            )
        task.updated_at = utc_now()

    def _upsert_template_task(
        self,
        project_id: int,
        identifier: str,
        patch: TaskPatch,
    ) -> UpdateOutcome:
        if not is_template_addressable(identifier) or patch.stage is None:
            raise TaskNotFoundError(identifier, project_id)
        factor_id = canonicalize(identifier)
        template = self._catalog.get(factor_id=factor_id, stage=patch.stage)
        if template is None:
            raise TaskNotFoundError(identifier, project_id)
        if patch.origin not in (None, TaskOrigin.TEMPLATE) or patch.source_id not in (
            None,
            factor_id,
        ):
            raise InvalidTaskPayloadError(
                "A template-addressed upsert cannot change the task identity.",
                details={"identifier": identifier, "sourceId": factor_id},
            )

        inserted = self._tasks.insert_template_task_if_absent(
            project_id=project_id,
            source_id=factor_id,
            stage=patch.stage,
            text=template.text,
            order=template.order,
        )
        task = self._tasks.get_template_task(
            project_id=project_id,
            source_id=factor_id,
            stage=patch.stage,
        )
        if task is None:
            raise UpdateConflictError(
                "Template task vanished during upsert.",
                details={"identifier": identifier, "projectId": project_id},
            )
        self._apply_patch(task, patch)
        self.session.flush()
        return UpdateOutcome(task=task, created=inserted, strategy="template_upsert")

    def _create_template_task(self, project_id: int, payload: TaskCreate) -> UpdateOutcome:
        assert payload.source_id is not None
        source_id = canonicalize(payload.source_id)
        if self._catalog.get(factor_id=source_id, stage=payload.stage) is None:
            raise InvalidTaskPayloadError(
                "sourceId and stage do not name a catalog template.",
                details={"sourceId": payload.source_id, "stage": str(payload.stage)},
            )
        inserted = self._tasks.insert_template_task_if_absent(
            project_id=project_id,
            source_id=source_id,
            stage=payload.stage,
            text=payload.text,
            order=payload.order,
            extra_values={
                "completed": payload.completed,
                "status": payload.status.value,
            },
        )
        task = self._tasks.get_template_task(
            project_id=project_id,
            source_id=source_id,
            stage=payload.stage,
        )
        if task is None:
            raise UpdateConflictError(
                "Template task vanished during create.",
                details={"projectId": project_id, "sourceId": source_id},
            )
        return UpdateOutcome(task=task, created=inserted)

    def _invalidate(self, project_id: int, identifier: str, task_id: str, *, created: bool) -> None:
        if self._cache is None:
            return
        if created:
            self._cache.invalidate_project(project_id)
            return
        self._cache.invalidate_identifier(project_id, identifier)
        self._cache.invalidate(project_id, task_id)
