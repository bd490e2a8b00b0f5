from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from pytest import MonkeyPatch
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel

from checklist.core.config import get_settings
from checklist.db.engine import create_engine_from_url, dispose_engine
from checklist.db.seed import seed_task_templates
from checklist.main import create_app
from tests.shared import ApiTestContext, create_project


def _to_sqlite_url(path: Path) -> str:
    return f"sqlite:///{path.as_posix()}"


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    """A temporary SQLite database with the schema and the template catalog."""
    db_engine = create_engine_from_url(_to_sqlite_url(tmp_path / "checklist-unit.db"))
    SQLModel.metadata.create_all(db_engine)
    with Session(db_engine) as session:
        seed_task_templates(session)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def api_context(tmp_path: Path, monkeypatch: MonkeyPatch) -> Iterator[ApiTestContext]:
    """
    Creates a temporary SQLite database and a test client.
    Seeds the catalog and two projects for isolation checks.
    """
    db_url = _to_sqlite_url(tmp_path / "api-integration.db")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.delenv("LOCAL_API_KEY", raising=False)
    monkeypatch.delenv("AUTH_REQUIRE_USER", raising=False)
    get_settings.cache_clear()
    dispose_engine()

    engine = create_engine_from_url(db_url)
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        seed_task_templates(session)
        project_id = create_project(session, "API Project")
        other_project_id = create_project(session, "API Project 2")

    with TestClient(create_app()) as client:
        yield ApiTestContext(
            client=client,
            engine=engine,
            project_id=project_id,
            other_project_id=other_project_id,
        )

    engine.dispose()
    dispose_engine()
    get_settings.cache_clear()
