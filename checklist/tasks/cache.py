from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from checklist.core.config import Settings
from checklist.core.logging import get_logger
from checklist.db.models import ProjectTask

logger = get_logger("checklist.tasks.cache")

CacheKey = tuple[int, str]


@dataclass(frozen=True, slots=True)
class CachedResolution:
    task_id: str
    project_id: int
    strategy: str
    expires_at: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    hits: int
    misses: int
    evictions: int
    corruptions: int
    size: int


class ResolutionCache:
    """Memoizes identifier -> task id per project.

    Holds ids, never ORM rows: callers re-read the row inside the project
    scope, so a stale or deleted entry can only cost a lookup.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 300.0,
        max_entries: int = 10_000,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.enabled = enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[CacheKey, CachedResolution] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._corruptions = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> ResolutionCache:
        return cls(
            ttl_seconds=settings.resolution_cache_ttl_s,
            max_entries=settings.resolution_cache_max_entries,
            enabled=settings.resolution_cache_enabled,
        )

    def get(self, project_id: int, identifier: str) -> CachedResolution | None:
        """Return a live entry for the key.

        An entry whose project differs from the key can only come from outside
        ``put``; it is evicted as corrupt. Callers still re-read the task with a
        project filter, which is the guard that keeps hits inside the project.
        """
        if not self.enabled:
            return None
        key = (project_id, identifier)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self._evictions += 1
                self._misses += 1
                return None
            if entry.project_id != project_id:
                del self._entries[key]
                self._corruptions += 1
                self._misses += 1
                corrupted = entry
            else:
                self._hits += 1
                return entry
        logger.warning(
            "task.cache_corruption_evicted",
            requested_project_id=project_id,
            cached_project_id=corrupted.project_id,
            identifier=identifier,
            task_id=corrupted.task_id,
        )
        return None

    def put(self, project_id: int, identifier: str, task: ProjectTask, strategy: str) -> None:
        if not self.enabled:
            return
        entry = CachedResolution(
            task_id=task.id,
            project_id=task.project_id,
            strategy=strategy,
            expires_at=self._clock() + self.ttl_seconds,
        )
        key = (project_id, identifier)
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1

    def invalidate(self, project_id: int, task_id: str) -> int:
        """Drop every entry of the project that points at or is keyed by ``task_id``."""
        with self._lock:
            stale = [
                key
                for key, entry in self._entries.items()
                if key[0] == project_id and (entry.task_id == task_id or key[1] == task_id)
            ]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def invalidate_project(self, project_id: int) -> int:
        with self._lock:
            stale = [key for key in self._entries if key[0] == project_id]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def invalidate_identifier(self, project_id: int, identifier: str) -> bool:
        with self._lock:
            return self._entries.pop((project_id, identifier), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                corruptions=self._corruptions,
                size=len(self._entries),
            )
