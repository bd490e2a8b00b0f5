from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import URL, Engine, make_url
from sqlmodel import create_engine

from checklist.core.config import Settings, get_settings

# Seconds a SQLite writer waits on a competing transaction before failing.
SQLITE_BUSY_TIMEOUT_S = 30

_engine: Engine | None = None


def _sqlite_url(database_url: str) -> URL | None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return None
    return url


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def create_engine_from_url(database_url: str, *, echo: bool = False) -> Engine:
    """Build an engine; SQLite connections share threads and enforce project FKs."""
    if _sqlite_url(database_url) is None:
        return create_engine(database_url, echo=echo)

    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_S},
    )
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _echo_enabled(settings: Settings) -> bool:
    if settings.sqlalchemy_echo is not None:
        return settings.sqlalchemy_echo
    return settings.debug and not settings.testing


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_from_url(settings.database_url, echo=_echo_enabled(settings))
    return _engine


def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def resolve_sqlite_database_path(database_url: str) -> Path | None:
    url = _sqlite_url(database_url)
    if url is None or url.database in (None, "", ":memory:"):
        return None
    path = Path(url.database)
    return path if path.is_absolute() else (Path.cwd() / path).resolve()


def ensure_database_parent_dir(database_url: str) -> None:
    path = resolve_sqlite_database_path(database_url)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
