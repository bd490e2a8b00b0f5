"""Multi-strategy lookup of a client identifier within one project.

Strategies run in order and the first hit wins. Each one queries inside the
requested project; a row from any other project is discarded, never returned.
To support a new legacy identifier quirk, append a strategy rather than
editing an existing one.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from checklist.core.logging import get_logger
from checklist.db.enums import TaskStage
from checklist.db.models import ProjectTask
from checklist.db.repositories import ProjectTaskRepository
from checklist.tasks.cache import ResolutionCache
from checklist.tasks.errors import (
    ProjectBoundaryViolationError,
    TaskNotFoundError,
    TaskStoreError,
)
from checklist.tasks.identifiers import canonicalize, validate_identifier

logger = get_logger("checklist.tasks.resolver")

DEFAULT_PARTIAL_MATCH_MIN_LENGTH = 8


@dataclass(frozen=True, slots=True)
class LookupRequest:
    project_id: int
    identifier: str
    canonical: str
    stage: TaskStage | None = None


StrategyLookup = Callable[[ProjectTaskRepository, LookupRequest], ProjectTask | None]


@dataclass(frozen=True, slots=True)
class ResolutionStrategy:
    name: str
    lookup: StrategyLookup


@dataclass(frozen=True, slots=True)
class Resolution:
    task: ProjectTask
    strategy: str
    from_cache: bool = False


def _select_partial_candidate(
    candidates: Sequence[ProjectTask],
    request: LookupRequest,
) -> ProjectTask | None:
    for candidate in candidates:
        # Exact ids and source ids belong to the earlier strategies.
        if candidate.id == request.canonical or candidate.source_id == request.canonical:
            continue
        if request.stage is not None and candidate.stage != request.stage:
            continue
        return candidate
    return None


def lookup_exact_id(tasks: ProjectTaskRepository, request: LookupRequest) -> ProjectTask | None:
    return tasks.get_in_project(project_id=request.project_id, task_id=request.identifier)


def lookup_canonical_id(
    tasks: ProjectTaskRepository,
    request: LookupRequest,
) -> ProjectTask | None:
    if request.canonical == request.identifier:
        return None
    return tasks.get_in_project(project_id=request.project_id, task_id=request.canonical)


def lookup_source_id(tasks: ProjectTaskRepository, request: LookupRequest) -> ProjectTask | None:
    # Template rows sort first; with a stage hint only that stage qualifies.
    matches = tasks.find_by_source(
        project_id=request.project_id,
        source_id=request.canonical,
        stage=request.stage,
    )
    return matches[0] if matches else None


def partial_id_strategy(min_length: int = DEFAULT_PARTIAL_MATCH_MIN_LENGTH) -> ResolutionStrategy:
    def lookup_partial_id(
        tasks: ProjectTaskRepository,
        request: LookupRequest,
    ) -> ProjectTask | None:
        if len(request.canonical) < min_length:
            return None
        candidates = tasks.find_by_prefix(project_id=request.project_id, prefix=request.canonical)
        if len(candidates) > 1:
            logger.info(
                "task.partial_match_ambiguous",
                project_id=request.project_id,
                identifier=request.identifier,
                candidate_count=len(candidates),
            )
        return _select_partial_candidate(candidates, request)

    return ResolutionStrategy(name="partial_id", lookup=lookup_partial_id)


def build_default_strategies(
    *,
    partial_match_min_length: int = DEFAULT_PARTIAL_MATCH_MIN_LENGTH,
) -> tuple[ResolutionStrategy, ...]:
    return (
        ResolutionStrategy(name="exact_id", lookup=lookup_exact_id),
        ResolutionStrategy(name="canonical_id", lookup=lookup_canonical_id),
        ResolutionStrategy(name="source_id", lookup=lookup_source_id),
        partial_id_strategy(partial_match_min_length),
    )


class TaskIdentityResolver:
    def __init__(
        self,
        session: Session,
        *,
        cache: ResolutionCache | None = None,
        strategies: Sequence[ResolutionStrategy] | None = None,
        partial_match_min_length: int = DEFAULT_PARTIAL_MATCH_MIN_LENGTH,
    ) -> None:
        self._tasks = ProjectTaskRepository(session)
        self._cache = cache
        self.strategies: tuple[ResolutionStrategy, ...] = (
            tuple(strategies)
            if strategies is not None
            else build_default_strategies(partial_match_min_length=partial_match_min_length)
        )

    def resolve(
        self,
        identifier: str,
        project_id: int,
        *,
        stage: TaskStage | None = None,
    ) -> Resolution | None:
        """Return the project's task for ``identifier``, or None when it is definitely absent.

        Store failures raise :class:`TaskStoreError` instead of looking like absence.
        """
        normalized = validate_identifier(identifier)
        request = LookupRequest(
            project_id=project_id,
            identifier=normalized,
            canonical=canonicalize(normalized),
            stage=stage,
        )
        try:
            cached = self._resolve_from_cache(request)
            if cached is not None:
                return cached
            for strategy in self.strategies:
                task = strategy.lookup(self._tasks, request)
                if task is None:
                    continue
                if task.project_id != project_id:
                    logger.error(
                        "task.resolution_scope_discarded",
                        strategy=strategy.name,
                        identifier=normalized,
                        requested_project_id=project_id,
                        task_project_id=task.project_id,
                    )
                    continue
                if self._cache is not None:
                    self._cache.put(project_id, normalized, task, strategy.name)
                logger.debug(
                    "task.resolved",
                    strategy=strategy.name,
                    identifier=normalized,
                    project_id=project_id,
                    task_id=task.id,
                )
                return Resolution(task=task, strategy=strategy.name)
        except SQLAlchemyError as exc:
            raise TaskStoreError(
                "Task lookup failed.",
                details={"identifier": normalized, "projectId": project_id},
            ) from exc

        logger.info(
            "task.resolution_missed",
            identifier=normalized,
            project_id=project_id,
        )
        return None

    def resolve_or_raise(
        self,
        identifier: str,
        project_id: int,
        *,
        stage: TaskStage | None = None,
    ) -> Resolution:
        resolution = self.resolve(identifier, project_id, stage=stage)
        if resolution is not None:
            return resolution
        if self.find_foreign_owner(identifier, project_id) is not None:
            raise ProjectBoundaryViolationError(
                identifier=identifier,
                requested_project_id=project_id,
            )
        raise TaskNotFoundError(identifier, project_id)

    def find_foreign_owner(self, identifier: str, project_id: int) -> int | None:
        """Project owning ``identifier`` when that is not ``project_id``.

        Only exact and canonical ids are probed. The result is used to report
        a boundary violation and is never used to resolve.
        """
        normalized = validate_identifier(identifier)
        candidates = dict.fromkeys((normalized, canonicalize(normalized)))
        try:
            for candidate in candidates:
                owner = self._tasks.find_owner_project(candidate)
                if owner is not None and owner != project_id:
                    logger.warning(
                        "task.boundary_violation",
                        identifier=normalized,
                        requested_project_id=project_id,
                        owner_project_id=owner,
                    )
                    return owner
        except SQLAlchemyError as exc:
            raise TaskStoreError(
                "Task lookup failed.",
                details={"identifier": normalized, "projectId": project_id},
            ) from exc
        return None

    def _resolve_from_cache(self, request: LookupRequest) -> Resolution | None:
        if self._cache is None:
            return None
        entry = self._cache.get(request.project_id, request.identifier)
        if entry is None:
            return None
        task = self._tasks.get_in_project(project_id=request.project_id, task_id=entry.task_id)
        if task is None:
            self._cache.invalidate_identifier(request.project_id, request.identifier)
            return None
        if request.stage is not None and task.stage != request.stage:
            return None
        return Resolution(task=task, strategy=entry.strategy, from_cache=True)
