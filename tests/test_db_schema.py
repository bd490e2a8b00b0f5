from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from checklist.db.bootstrap import initialize_database
from checklist.db.engine import create_engine_from_url
from checklist.db.enums import TaskOrigin, TaskStage
from checklist.db.migrations import upgrade_to_head
from checklist.db.models import Project, ProjectTask, TaskTemplate
from checklist.db.seed import DEFAULT_TASK_TEMPLATES


def _to_sqlite_url(path: Path) -> str:
    return f"sqlite:///{path.as_posix()}"


def test_migrations_create_expected_schema(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "schema.db")
    initialize_database(database_url=db_url, seed=False)

    engine = create_engine_from_url(db_url)
    try:
        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())
        assert {"projects", "task_templates", "project_tasks"}.issubset(table_names)

        projects_columns = {column["name"] for column in inspector.get_columns("projects")}
        assert projects_columns == {"id", "name", "created_at", "updated_at"}

        template_columns = {column["name"] for column in inspector.get_columns("task_templates")}
        assert template_columns == {"id", "factor_id", "stage", "order", "text"}

        task_columns = {column["name"] for column in inspector.get_columns("project_tasks")}
        assert task_columns == {
            "id",
            "project_id",
            "origin",
            "source_id",
            "stage",
            "text",
            "completed",
            "status",
            "order",
            "created_at",
            "updated_at",
        }

        task_foreign_keys = {
            (fk["constrained_columns"][0], fk["referred_table"])
            for fk in inspector.get_foreign_keys("project_tasks")
        }
        assert ("project_id", "projects") in task_foreign_keys

        unique_indexes = {
            index["name"]: index["column_names"]
            for index in inspector.get_indexes("project_tasks")
            if index["unique"]
        }
        assert unique_indexes["uq_project_tasks_template_identity"] == [
            "project_id",
            "source_id",
            "stage",
        ]
    finally:
        engine.dispose()


def test_migrations_are_repeatable_and_preserve_data(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "repeatable.db")
    initialize_database(database_url=db_url, seed=False)

    engine = create_engine_from_url(db_url)
    try:
        with Session(engine) as session:
            session.add(Project(name="Regression Project"))
            session.commit()

        upgrade_to_head(db_url)

        with Session(engine) as session:
            persisted_project = session.exec(
                select(Project).where(Project.name == "Regression Project")
            ).first()
            assert persisted_project is not None
    finally:
        engine.dispose()


def test_seed_data_is_idempotent(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "seed.db")

    initialize_database(database_url=db_url, seed=True)
    initialize_database(database_url=db_url, seed=True)

    engine = create_engine_from_url(db_url)
    try:
        with Session(engine) as session:
            assert len(session.exec(select(Project)).all()) == 1
            templates = session.exec(select(TaskTemplate)).all()
            assert len(templates) == len(DEFAULT_TASK_TEMPLATES) == 12
            assert len({(t.factor_id, t.stage) for t in templates}) == 12
    finally:
        engine.dispose()


def test_migrated_schema_rejects_second_template_row_for_same_component(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "unique.db")
    initialize_database(database_url=db_url, seed=True)
    source_id = DEFAULT_TASK_TEMPLATES[0].factor_id

    engine = create_engine_from_url(db_url)
    try:
        with Session(engine) as session:
            project = session.exec(select(Project)).one()
            assert project.id is not None
            for _ in range(2):
                session.add(
                    ProjectTask(
                        project_id=project.id,
                        origin=TaskOrigin.TEMPLATE,
                        source_id=source_id,
                        stage=TaskStage.IDENTIFICATION,
                        text="Duplicate",
                    )
                )
            with pytest.raises(IntegrityError):
                session.commit()
    finally:
        engine.dispose()


def test_migrated_schema_requires_source_for_template_rows(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "check.db")
    initialize_database(database_url=db_url, seed=True)

    engine = create_engine_from_url(db_url)
    try:
        with Session(engine) as session:
            project = session.exec(select(Project)).one()
            assert project.id is not None
            session.add(
                ProjectTask(
                    project_id=project.id,
                    origin=TaskOrigin.TEMPLATE,
                    source_id=None,
                    stage=TaskStage.DEFINITION,
                    text="No source",
                )
            )
            with pytest.raises(IntegrityError):
                session.commit()
    finally:
        engine.dispose()


def test_sqlite_engine_rejects_tasks_for_unknown_project(tmp_path: Path) -> None:
    db_url = _to_sqlite_url(tmp_path / "fk.db")
    initialize_database(database_url=db_url, seed=False)

    engine = create_engine_from_url(db_url)
    try:
        with Session(engine) as session:
            session.add(
                ProjectTask(
                    project_id=4242,
                    origin=TaskOrigin.CUSTOM,
                    stage=TaskStage.DEFINITION,
                    text="Orphan",
                )
            )
            with pytest.raises(IntegrityError):
                session.commit()
    finally:
        engine.dispose()
