"""Database layer modules and public helpers."""

from checklist.db.enums import STAGE_SEQUENCE, TaskOrigin, TaskStage, TaskStatus
from checklist.db.models import Project, ProjectTask, TaskTemplate
from checklist.db.session import get_session, session_scope

__all__ = [
    "Project",
    "ProjectTask",
    "STAGE_SEQUENCE",
    "TaskOrigin",
    "TaskStage",
    "TaskStatus",
    "TaskTemplate",
    "get_session",
    "session_scope",
]
