from __future__ import annotations

import pytest
from pydantic import ValidationError
from sqlmodel import Session, select

from checklist.db.enums import TaskOrigin, TaskStage, TaskStatus
from checklist.db.models import ProjectTask
from checklist.db.seed import DEFAULT_TASK_TEMPLATES
from checklist.tasks.cache import ResolutionCache
from checklist.tasks.errors import (
    InvalidTaskPayloadError,
    ProjectBoundaryViolationError,
    ProjectNotFoundError,
    TaskNotFoundError,
    UpdateConflictError,
)
from checklist.tasks.seeding import ensure_template_tasks
from checklist.tasks.updates import TaskCreate, TaskPatch, TaskUpdateService
from tests.shared import LEGACY_CANONICAL_ID, LEGACY_COMPOUND_ID, create_project, create_task

DEFINITION = DEFAULT_TASK_TEMPLATES[0]


def _snapshot(session: Session, project_id: int) -> list[tuple[str, bool, str, str]]:
    session.expire_all()
    rows = session.exec(select(ProjectTask).where(ProjectTask.project_id == project_id)).all()
    return sorted((row.id, row.completed, row.text, str(row.status)) for row in rows)


def test_patch_rejects_empty_and_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        TaskPatch.model_validate({})
    with pytest.raises(ValidationError):
        TaskPatch.model_validate({"projectId": 2})
    with pytest.raises(ValidationError):
        TaskPatch.model_validate({"completed": None})


def test_patch_accepts_camel_case_fields() -> None:
    patch = TaskPatch.model_validate({"sourceId": "abc", "completed": True})
    assert patch.changes() == {"source_id": "abc", "completed": True}


def test_create_payload_requires_source_for_template_origin() -> None:
    with pytest.raises(ValidationError):
        TaskCreate.model_validate({"text": "x", "stage": "closure", "origin": "template"})


def test_update_round_trip_preserves_identity(session: Session) -> None:
    project_id = create_project(session)
    tasks = ensure_template_tasks(session, project_id)
    target = tasks[0]

    outcome = TaskUpdateService(session).update_task(
        project_id,
        target.id,
        TaskPatch(completed=True),
    )

    assert outcome.created is False
    assert outcome.strategy == "exact_id"
    session.expire_all()
    stored = session.get(ProjectTask, target.id)
    assert stored is not None
    assert stored.completed is True
    assert stored.origin == TaskOrigin.TEMPLATE
    assert stored.source_id == target.source_id
    assert stored.stage == target.stage


def test_update_refreshes_updated_at(session: Session) -> None:
    project_id = create_project(session)
    task = create_task(session, project_id)
    before = task.updated_at

    outcome = TaskUpdateService(session).update_task(
        project_id,
        task.id,
        TaskPatch(status=TaskStatus.IN_PROGRESS, text="Renamed"),
    )

    assert outcome.task.text == "Renamed"
    assert outcome.task.status == TaskStatus.IN_PROGRESS
    assert outcome.task.updated_at >= before


def test_update_across_project_boundary_is_rejected_without_mutation(session: Session) -> None:
    project_a = create_project(session, "A")
    project_b = create_project(session, "B")
    task_a = ensure_template_tasks(session, project_a)[0]
    ensure_template_tasks(session, project_b)
    before_a = _snapshot(session, project_a)
    before_b = _snapshot(session, project_b)

    with pytest.raises(ProjectBoundaryViolationError):
        TaskUpdateService(session).update_task(project_b, task_a.id, TaskPatch(completed=True))

    assert _snapshot(session, project_a) == before_a
    assert _snapshot(session, project_b) == before_b


def test_update_with_legacy_compound_id(session: Session) -> None:
    project_id = create_project(session)
    create_task(session, project_id, task_id=LEGACY_CANONICAL_ID)

    outcome = TaskUpdateService(session).update_task(
        project_id,
        LEGACY_COMPOUND_ID,
        TaskPatch(completed=True),
    )

    assert outcome.task.id == LEGACY_CANONICAL_ID
    assert outcome.strategy == "canonical_id"
    session.expire_all()
    stored = session.get(ProjectTask, LEGACY_CANONICAL_ID)
    assert stored is not None and stored.completed is True
    assert session.get(ProjectTask, LEGACY_COMPOUND_ID) is None


def test_update_by_source_id_targets_hinted_stage(session: Session) -> None:
    project_id = create_project(session)
    ensure_template_tasks(session, project_id)

    outcome = TaskUpdateService(session).update_task(
        project_id,
        DEFINITION.factor_id,
        TaskPatch(stage=TaskStage.DELIVERY, completed=True),
    )

    assert outcome.strategy == "source_id"
    assert outcome.task.source_id == DEFINITION.factor_id
    assert outcome.task.stage == TaskStage.DELIVERY
    assert outcome.task.completed is True


def test_upsert_instantiates_missing_template_task(session: Session) -> None:
    project_id = create_project(session)

    outcome = TaskUpdateService(session).update_task(
        project_id,
        DEFINITION.factor_id,
        TaskPatch(stage=DEFINITION.stage, completed=True),
    )

    assert outcome.created is True
    assert outcome.task.origin == TaskOrigin.TEMPLATE
    assert outcome.task.source_id == DEFINITION.factor_id
    assert outcome.task.text == DEFINITION.text
    assert outcome.task.completed is True

    # Seeding afterwards keeps the upserted row rather than adding another.
    tasks = ensure_template_tasks(session, project_id)
    matching = [
        task
        for task in tasks
        if task.source_id == DEFINITION.factor_id and task.stage == DEFINITION.stage
    ]
    assert [task.id for task in matching] == [outcome.task.id]


def test_upsert_requires_stage_and_catalog_template(session: Session) -> None:
    project_id = create_project(session)
    service = TaskUpdateService(session)

    with pytest.raises(TaskNotFoundError):
        service.update_task(project_id, DEFINITION.factor_id, TaskPatch(completed=True))
    with pytest.raises(TaskNotFoundError):
        service.update_task(
            project_id,
            "99999999-9999-4999-8999-999999999999",
            TaskPatch(stage=TaskStage.CLOSURE, completed=True),
        )
    with pytest.raises(TaskNotFoundError):
        service.update_task(project_id, "missing-custom", TaskPatch(completed=True))


def test_upsert_rejects_identity_override(session: Session) -> None:
    project_id = create_project(session)

    with pytest.raises(InvalidTaskPayloadError):
        TaskUpdateService(session).update_task(
            project_id,
            DEFINITION.factor_id,
            TaskPatch(stage=DEFINITION.stage, origin=TaskOrigin.CUSTOM),
        )
    assert _snapshot(session, project_id) == []


def test_update_write_conflict_rolls_back_whole_patch(session: Session) -> None:
    project_id = create_project(session)
    tasks = ensure_template_tasks(session, project_id)
    target = next(
        task
        for task in tasks
        if task.source_id == DEFINITION.factor_id and task.stage == DEFINITION.stage
    )
    occupied_stage = next(
        template.stage
        for template in DEFAULT_TASK_TEMPLATES
        if template.factor_id == DEFINITION.factor_id and template.stage != DEFINITION.stage
    )

    with pytest.raises(UpdateConflictError):
        TaskUpdateService(session).update_task(
            project_id,
            target.id,
            TaskPatch(stage=occupied_stage, completed=True),
        )

    session.expire_all()
    reloaded = session.get(ProjectTask, target.id)
    assert reloaded is not None
    assert reloaded.stage == DEFINITION.stage
    assert reloaded.completed is False


def test_update_unknown_project(session: Session) -> None:
    with pytest.raises(ProjectNotFoundError):
        TaskUpdateService(session).update_task(404, "anything", TaskPatch(completed=True))


def test_update_invalidates_cached_resolution(session: Session) -> None:
    project_id = create_project(session)
    task = create_task(session, project_id, task_id=LEGACY_CANONICAL_ID)
    cache = ResolutionCache()
    service = TaskUpdateService(session, cache=cache)
    service.update_task(project_id, LEGACY_COMPOUND_ID, TaskPatch(completed=True))

    assert cache.get(project_id, LEGACY_COMPOUND_ID) is None
    assert cache.get(project_id, task.id) is None


def test_create_custom_and_template_tasks(session: Session) -> None:
    project_id = create_project(session)
    service = TaskUpdateService(session)

    custom = service.create_task(
        project_id,
        TaskCreate(text="Write onboarding notes", stage=TaskStage.DEFINITION),
    )
    template = service.create_task(
        project_id,
        TaskCreate(
            text=DEFINITION.text,
            stage=DEFINITION.stage,
            origin=TaskOrigin.TEMPLATE,
            source_id=DEFINITION.factor_id,
        ),
    )
    again = service.create_task(
        project_id,
        TaskCreate(
            text="Different text",
            stage=DEFINITION.stage,
            origin=TaskOrigin.TEMPLATE,
            source_id=DEFINITION.factor_id,
        ),
    )

    assert custom.created is True
    assert custom.task.origin == TaskOrigin.CUSTOM
    assert template.created is True
    assert again.created is False
    assert again.task.id == template.task.id
    assert again.task.text == DEFINITION.text


def test_create_template_task_requires_catalog_entry(session: Session) -> None:
    project_id = create_project(session)

    with pytest.raises(InvalidTaskPayloadError):
        TaskUpdateService(session).create_task(
            project_id,
            TaskCreate(
                text="Unknown",
                stage=TaskStage.CLOSURE,
                origin=TaskOrigin.TEMPLATE,
                source_id="99999999-9999-4999-8999-999999999999",
            ),
        )


def test_delete_task_is_idempotent_and_scoped(session: Session) -> None:
    project_a = create_project(session, "A")
    project_b = create_project(session, "B")
    task = create_task(session, project_a)
    service = TaskUpdateService(session)

    with pytest.raises(ProjectBoundaryViolationError):
        service.delete_task(project_b, task.id)

    assert service.delete_task(project_a, task.id) is True
    assert service.delete_task(project_a, task.id) is False
    session.expire_all()
    assert session.get(ProjectTask, task.id) is None
