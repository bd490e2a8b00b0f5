from checklist.db.repositories.common import insert_if_absent, stage_rank
from checklist.db.repositories.project_repository import ProjectRepository
from checklist.db.repositories.task_repository import (
    TEMPLATE_IDENTITY_COLUMNS,
    ProjectTaskRepository,
    TaskFilters,
)
from checklist.db.repositories.template_repository import TaskTemplateCatalog

__all__ = [
    "ProjectRepository",
    "ProjectTaskRepository",
    "TEMPLATE_IDENTITY_COLUMNS",
    "TaskFilters",
    "TaskTemplateCatalog",
    "insert_if_absent",
    "stage_rank",
]
