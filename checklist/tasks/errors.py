from __future__ import annotations

from typing import Any


class TaskDomainError(Exception):
    """Base class for failures of the task identity and consistency layer."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidIdentifierError(TaskDomainError):
    code = "VALIDATION_ERROR"


class InvalidTaskPayloadError(TaskDomainError):
    code = "VALIDATION_ERROR"


class ProjectNotFoundError(TaskDomainError):
    code = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: int) -> None:
        self.project_id = project_id
        super().__init__(
            f"Project {project_id} does not exist.",
            details={"projectId": project_id},
        )


class TaskNotFoundError(TaskDomainError):
    code = "TASK_NOT_FOUND"

    def __init__(self, identifier: str, project_id: int) -> None:
        self.identifier = identifier
        self.project_id = project_id
        super().__init__(
            f"Task {identifier} not found in project {project_id}.",
            details={"identifier": identifier, "projectId": project_id},
        )


class ProjectBoundaryViolationError(TaskDomainError):
    code = "PROJECT_BOUNDARY_VIOLATION"

    def __init__(self, *, identifier: str, requested_project_id: int) -> None:
        self.identifier = identifier
        self.requested_project_id = requested_project_id
        # The owning project is not disclosed to the caller.
        super().__init__(
            f"Task {identifier} does not belong to project {requested_project_id}.",
            details={"identifier": identifier, "requestedProjectId": requested_project_id},
        )


class UpdateConflictError(TaskDomainError):
    code = "UPDATE_CONFLICT"


class TaskStoreError(TaskDomainError):
    """A store lookup failed; distinct from a task being absent."""

    code = "INTERNAL_ERROR"
