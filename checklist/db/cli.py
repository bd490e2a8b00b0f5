from __future__ import annotations

import argparse
from collections.abc import Sequence

from sqlalchemy.engine import Engine

from checklist.core.config import get_settings
from checklist.core.logging import configure_logging
from checklist.db.bootstrap import initialize_database
from checklist.db.engine import create_engine_from_url, get_engine
from checklist.db.enums import TaskOrigin
from checklist.db.migrations import upgrade_to_head
from checklist.db.repositories import ProjectRepository, ProjectTaskRepository, TaskFilters
from checklist.db.seed import seed_initial_data
from checklist.db.session import session_scope
from checklist.tasks.duplicates import find_duplicates, remove_duplicates
from checklist.tasks.errors import TaskDomainError
from checklist.tasks.seeding import TemplateTaskSeeder


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checklist-db",
        description="Checklist backend database management commands.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create database directory, apply migrations and optionally seed data.",
    )
    init_parser.add_argument("--database-url", default=None)
    init_parser.add_argument("--skip-seed", action="store_true")

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Apply database migrations to latest revision.",
    )
    migrate_parser.add_argument("--database-url", default=None)

    seed_parser = subparsers.add_parser(
        "seed",
        help="Load the task template catalog and the playground project.",
    )
    seed_parser.add_argument("--database-url", default=None)

    ensure_parser = subparsers.add_parser(
        "ensure",
        help="Instantiate missing template tasks for every project, or one.",
    )
    ensure_parser.add_argument("--database-url", default=None)
    ensure_parser.add_argument("--project-id", type=int, default=None)

    duplicates_parser = subparsers.add_parser(
        "duplicates",
        help="Report template tasks sharing (sourceId, stage) within a project.",
    )
    duplicates_parser.add_argument("--database-url", default=None)
    duplicates_parser.add_argument("--project-id", type=int, required=True)
    duplicates_parser.add_argument(
        "--fix",
        action="store_true",
        help="Delete extra rows, keeping the completed or else the earliest one.",
    )

    return parser


def _engine_for(database_url: str | None) -> Engine:
    if database_url is None:
        return get_engine()
    return create_engine_from_url(database_url)


def _run_ensure(engine: Engine, *, project_id: int | None) -> int:
    with session_scope(engine) as session:
        project_ids = (
            [project_id] if project_id is not None else ProjectRepository(session).list_ids()
        )
        seeder = TemplateTaskSeeder(session)
        results = [(pid, seeder.ensure_template_tasks(pid)) for pid in project_ids]

    for pid, result in results:
        print(f"Project {pid}: {result.created_count} template task(s) added.")
    print(f"Checked {len(results)} project(s).")
    return 0


def _run_duplicates(engine: Engine, *, project_id: int, fix: bool) -> int:
    with session_scope(engine) as session:
        if fix:
            groups = remove_duplicates(session, project_id)
        else:
            rows = ProjectTaskRepository(session).list_for_project(
                project_id,
                filters=TaskFilters(origin=TaskOrigin.TEMPLATE),
            )
            groups = find_duplicates(rows)

    if not groups:
        print(f"No duplicate template tasks in project {project_id}.")
        return 0
    for group in groups:
        task_ids = ", ".join(group.task_ids)
        print(f"{group.source_id} [{group.stage}]: {group.count} rows -> {task_ids}")
    if fix:
        print(f"Removed duplicates from {len(groups)} group(s).")
        return 0
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(get_settings())

    if args.command == "init":
        result = initialize_database(
            database_url=args.database_url,
            seed=not args.skip_seed,
        )
        print(
            f"Database initialized at revision {result.revision}; "
            f"{result.templates_inserted} template(s) added."
        )
        return 0

    if args.command == "migrate":
        revision = upgrade_to_head(args.database_url)
        print(f"Database migrations applied; revision {revision}.")
        return 0

    if args.command == "seed":
        with session_scope(_engine_for(args.database_url)) as session:
            inserted = seed_initial_data(session)
        print(f"Seed data loaded; {inserted} template(s) added.")
        return 0

    if args.command == "ensure":
        try:
            return _run_ensure(_engine_for(args.database_url), project_id=args.project_id)
        except TaskDomainError as exc:
            print(f"{exc.code}: {exc.message}")
            return 2

    if args.command == "duplicates":
        try:
            return _run_duplicates(
                _engine_for(args.database_url),
                project_id=args.project_id,
                fix=args.fix,
            )
        except TaskDomainError as exc:
            print(f"{exc.code}: {exc.message}")
            return 2

    parser.error(f"Unsupported command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
