from __future__ import annotations

from sqlmodel import Session

from checklist.db.models import ProjectTask
from checklist.tasks.cache import CachedResolution, ResolutionCache
from checklist.tasks.resolver import TaskIdentityResolver
from tests.shared import create_project, create_task


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _task(task_id: str, project_id: int) -> ProjectTask:
    task = ProjectTask(project_id=project_id, stage="identification", text="t")
    task.id = task_id
    return task


def test_cache_hit_and_ttl_expiry() -> None:
    clock = FakeClock()
    cache = ResolutionCache(ttl_seconds=10, clock=clock)
    cache.put(1, "abc", _task("task-1", 1), "exact_id")

    entry = cache.get(1, "abc")
    assert entry is not None
    assert entry.task_id == "task-1"
    assert entry.strategy == "exact_id"

    clock.now += 11
    assert cache.get(1, "abc") is None
    stats = cache.stats()
    assert stats.hits == 1
    assert stats.evictions == 1
    assert stats.size == 0


def test_cache_is_keyed_by_project() -> None:
    cache = ResolutionCache()
    cache.put(1, "abc", _task("task-1", 1), "exact_id")

    assert cache.get(2, "abc") is None


def test_cache_bounds_entries_lru() -> None:
    cache = ResolutionCache(max_entries=2)
    cache.put(1, "a", _task("task-a", 1), "exact_id")
    cache.put(1, "b", _task("task-b", 1), "exact_id")
    cache.put(1, "c", _task("task-c", 1), "exact_id")

    assert cache.get(1, "a") is None
    assert cache.get(1, "c") is not None
    assert cache.stats().size == 2


def test_cache_evicts_entry_pointing_at_other_project() -> None:
    cache = ResolutionCache()
    # An entry stored under project 1 that records a task owned by project 2.
    cache.put(1, "abc", _task("task-of-2", 2), "source_id")

    assert cache.get(1, "abc") is None
    stats = cache.stats()
    assert stats.corruptions == 1
    assert stats.size == 0


def test_cache_invalidation_helpers() -> None:
    cache = ResolutionCache()
    cache.put(1, "alias", _task("task-1", 1), "source_id")
    cache.put(1, "task-1", _task("task-1", 1), "exact_id")
    cache.put(1, "other", _task("task-2", 1), "exact_id")
    cache.put(2, "alias", _task("task-9", 2), "exact_id")

    assert cache.invalidate(1, "task-1") == 2
    assert cache.invalidate_identifier(1, "other") is True
    assert cache.invalidate_project(2) == 1
    assert cache.stats().size == 0


def test_disabled_cache_stores_nothing() -> None:
    cache = ResolutionCache(enabled=False)
    cache.put(1, "abc", _task("task-1", 1), "exact_id")

    assert cache.get(1, "abc") is None
    assert cache.stats().size == 0


def test_resolver_never_trusts_cross_project_cache_entry(session: Session) -> None:
    project_a = create_project(session, "A")
    project_b = create_project(session, "B")
    foreign = create_task(session, project_a, text="Belongs to A")
    cache = ResolutionCache()
    key = "poisoned-key"
    # Simulate corruption that bypassed put(): project B key, project B owner, A's task id.
    cache._entries[(project_b, key)] = CachedResolution(
        task_id=foreign.id,
        project_id=project_b,
        strategy="exact_id",
        expires_at=float("inf"),
    )

    resolution = TaskIdentityResolver(session, cache=cache).resolve(key, project_b)

    assert resolution is None
    assert cache.get(project_b, key) is None


def test_resolver_results_match_with_and_without_cache(session: Session) -> None:
    project_id = create_project(session)
    task = create_task(session, project_id)
    cached_resolver = TaskIdentityResolver(session, cache=ResolutionCache())
    plain_resolver = TaskIdentityResolver(session)

    first = cached_resolver.resolve(task.id, project_id)
    second = cached_resolver.resolve(task.id, project_id)
    plain = plain_resolver.resolve(task.id, project_id)

    assert first is not None and second is not None and plain is not None
    assert first.task.id == second.task.id == plain.task.id == task.id
    assert first.from_cache is False
    assert second.from_cache is True
    assert plain.from_cache is False
