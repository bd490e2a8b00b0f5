from __future__ import annotations

from dataclasses import dataclass

from checklist.core.config import get_settings
from checklist.db.engine import create_engine_from_url
from checklist.db.migrations import upgrade_to_head
from checklist.db.seed import seed_initial_data
from checklist.db.session import session_scope


@dataclass(frozen=True, slots=True)
class BootstrapResult:
    revision: str | None
    templates_inserted: int = 0


def initialize_database(
    database_url: str | None = None,
    *,
    seed: bool = True,
) -> BootstrapResult:
    """Migrate to head and, when ``seed`` is set, load the template catalog."""
    target_url = database_url or get_settings().database_url
    revision = upgrade_to_head(target_url)
    if not seed:
        return BootstrapResult(revision=revision)

    engine = create_engine_from_url(target_url)
    try:
        with session_scope(engine) as session:
            inserted = seed_initial_data(session)
    finally:
        engine.dispose()
    return BootstrapResult(revision=revision, templates_inserted=inserted)
