from checklist.tasks.cache import CachedResolution, CacheStats, ResolutionCache
from checklist.tasks.duplicates import DuplicateGroup, find_duplicates, remove_duplicates
from checklist.tasks.errors import (
    InvalidIdentifierError,
    InvalidTaskPayloadError,
    ProjectBoundaryViolationError,
    ProjectNotFoundError,
    TaskDomainError,
    TaskNotFoundError,
    TaskStoreError,
    UpdateConflictError,
)
from checklist.tasks.resolver import (
    Resolution,
    ResolutionStrategy,
    TaskIdentityResolver,
    build_default_strategies,
)
from checklist.tasks.seeding import SeedResult, TemplateTaskSeeder, ensure_template_tasks
from checklist.tasks.updates import TaskCreate, TaskPatch, TaskUpdateService, UpdateOutcome

__all__ = [
    "CacheStats",
    "CachedResolution",
    "DuplicateGroup",
    "InvalidIdentifierError",
    "InvalidTaskPayloadError",
    "ProjectBoundaryViolationError",
    "ProjectNotFoundError",
    "Resolution",
    "ResolutionCache",
    "ResolutionStrategy",
    "SeedResult",
    "TaskCreate",
    "TaskDomainError",
    "TaskIdentityResolver",
    "TaskNotFoundError",
    "TaskPatch",
    "TaskStoreError",
    "TaskUpdateService",
    "TemplateTaskSeeder",
    "UpdateConflictError",
    "UpdateOutcome",
    "build_default_strategies",
    "ensure_template_tasks",
    "find_duplicates",
    "remove_duplicates",
]
