from __future__ import annotations

from typing import Annotated, Any, NoReturn, cast

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from sqlmodel import Session

from checklist.api.errors import ApiException, error_response_docs
from checklist.api.schemas import DuplicateGroupRead, TaskRead
from checklist.core.auth import AuthenticatedUser, get_current_user
from checklist.core.config import get_settings
from checklist.core.logging import bind_log_context, get_logger
from checklist.db.enums import TaskOrigin, TaskStage
from checklist.db.repositories import ProjectRepository, ProjectTaskRepository, TaskFilters
from checklist.db.session import get_session
from checklist.tasks import (
    ProjectNotFoundError,
    ResolutionCache,
    TaskCreate,
    TaskDomainError,
    TaskIdentityResolver,
    TaskPatch,
    TaskUpdateService,
    ensure_template_tasks,
    find_duplicates,
)

router = APIRouter(prefix="/projects/{project_id}/tasks", tags=["tasks"])
logger = get_logger("checklist.api.tasks")


def get_resolution_cache(request: Request) -> ResolutionCache | None:
    return getattr(request.app.state, "resolution_cache", None)


DbSession = Annotated[Session, Depends(get_session)]
Cache = Annotated[ResolutionCache | None, Depends(get_resolution_cache)]
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
ProjectId = Annotated[int, Path(gt=0)]
Identifier = Annotated[str, Path(min_length=1, max_length=255)]


def _docs(*codes: str) -> dict[int | str, dict[str, Any]]:
    return cast(dict[int | str, dict[str, Any]], error_response_docs(*codes))


def _bind(project_id: int, user: AuthenticatedUser, *, task_id: str | None = None) -> None:
    bind_log_context(project_id=project_id, task_id=task_id, user=user.user_id)


def _raise_api_error(exc: TaskDomainError) -> NoReturn:
    raise ApiException.from_domain(exc) from exc


def _update_service(session: Session, cache: ResolutionCache | None) -> TaskUpdateService:
    return TaskUpdateService(
        session,
        cache=cache,
        partial_match_min_length=get_settings().partial_match_min_length,
    )


@router.get(
    "",
    response_model=list[TaskRead],
    response_model_by_alias=True,
    responses=_docs("PROJECT_NOT_FOUND", "VALIDATION_ERROR"),
)
def list_tasks(
    project_id: ProjectId,
    session: DbSession,
    cache: Cache,
    user: CurrentUser,
    ensure: Annotated[bool, Query()] = False,
    origin: Annotated[TaskOrigin | None, Query()] = None,
    stage: Annotated[TaskStage | None, Query()] = None,
    completed: Annotated[bool | None, Query()] = None,
) -> list[TaskRead]:
    _bind(project_id, user)
    try:
        if ensure:
            ensure_template_tasks(session, project_id, cache=cache)
        elif not ProjectRepository(session).exists(project_id):
            raise ProjectNotFoundError(project_id)
    except TaskDomainError as exc:
        _raise_api_error(exc)
    tasks = ProjectTaskRepository(session).list_for_project(
        project_id,
        filters=TaskFilters(origin=origin, stage=stage, completed=completed),
    )
    return [TaskRead.model_validate(task) for task in tasks]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=TaskRead,
    response_model_by_alias=True,
    responses=_docs("PROJECT_NOT_FOUND", "UPDATE_CONFLICT", "VALIDATION_ERROR"),
)
def create_task(
    project_id: ProjectId,
    payload: TaskCreate,
    response: Response,
    session: DbSession,
    cache: Cache,
    user: CurrentUser,
) -> TaskRead:
    _bind(project_id, user)
    try:
        outcome = _update_service(session, cache).create_task(project_id, payload)
    except TaskDomainError as exc:
        _raise_api_error(exc)
    if not outcome.created:
        response.status_code = status.HTTP_200_OK
    return TaskRead.model_validate(outcome.task)


# Declared before "/{identifier}" so the literal path wins.
@router.get(
    "/duplicates",
    response_model=list[DuplicateGroupRead],
    response_model_by_alias=True,
    responses=_docs("PROJECT_NOT_FOUND"),
)
def list_duplicates(
    project_id: ProjectId,
    session: DbSession,
    user: CurrentUser,
) -> list[DuplicateGroupRead]:
    _bind(project_id, user)
    if not ProjectRepository(session).exists(project_id):
        _raise_api_error(ProjectNotFoundError(project_id))
    tasks = ProjectTaskRepository(session).list_for_project(
        project_id,
        filters=TaskFilters(origin=TaskOrigin.TEMPLATE),
    )
    return [DuplicateGroupRead.model_validate(group) for group in find_duplicates(tasks)]


@router.get(
    "/{identifier}",
    response_model=TaskRead,
    response_model_by_alias=True,
    responses=_docs(
        "PROJECT_NOT_FOUND",
        "TASK_NOT_FOUND",
        "PROJECT_BOUNDARY_VIOLATION",
        "VALIDATION_ERROR",
    ),
)
def get_task(
    project_id: ProjectId,
    identifier: Identifier,
    session: DbSession,
    cache: Cache,
    user: CurrentUser,
    stage: Annotated[TaskStage | None, Query()] = None,
) -> TaskRead:
    _bind(project_id, user, task_id=identifier)
    resolver = TaskIdentityResolver(
        session,
        cache=cache,
        partial_match_min_length=get_settings().partial_match_min_length,
    )
    try:
        if not ProjectRepository(session).exists(project_id):
            raise ProjectNotFoundError(project_id)
        resolution = resolver.resolve_or_raise(identifier, project_id, stage=stage)
    except TaskDomainError as exc:
        _raise_api_error(exc)
    return TaskRead.model_validate(resolution.task)


@router.put(
    "/{identifier}",
    response_model=TaskRead,
    response_model_by_alias=True,
    responses=_docs(
        "PROJECT_NOT_FOUND",
        "TASK_NOT_FOUND",
        "PROJECT_BOUNDARY_VIOLATION",
        "UPDATE_CONFLICT",
        "VALIDATION_ERROR",
    ),
)
def update_task(
    project_id: ProjectId,
    identifier: Identifier,
    payload: TaskPatch,
    response: Response,
    session: DbSession,
    cache: Cache,
    user: CurrentUser,
) -> TaskRead:
    _bind(project_id, user, task_id=identifier)
    try:
        outcome = _update_service(session, cache).update_task(project_id, identifier, payload)
    except TaskDomainError as exc:
        _raise_api_error(exc)
    if outcome.created:
        response.status_code = status.HTTP_201_CREATED
    return TaskRead.model_validate(outcome.task)


@router.delete(
    "/{identifier}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_docs("PROJECT_NOT_FOUND", "PROJECT_BOUNDARY_VIOLATION", "VALIDATION_ERROR"),
)
def delete_task(
    project_id: ProjectId,
    identifier: Identifier,
    session: DbSession,
    cache: Cache,
    user: CurrentUser,
) -> Response:
    _bind(project_id, user, task_id=identifier)
    try:
        deleted = _update_service(session, cache).delete_task(project_id, identifier)
    except TaskDomainError as exc:
        _raise_api_error(exc)
    if not deleted:
        logger.info("task.delete_absent", project_id=project_id, identifier=identifier)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
