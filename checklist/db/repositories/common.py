from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import Table, case, insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.elements import ColumnElement, TextClause
from sqlmodel import Session

from checklist.db.enums import STAGE_SEQUENCE


def stage_rank(column: Any) -> ColumnElement[int]:
    """SQL expression ranking a stage column by checklist sequence."""
    return case(
        {stage.value: rank for rank, stage in enumerate(STAGE_SEQUENCE)},
        value=column,
        else_=len(STAGE_SEQUENCE),
    )


def insert_if_absent(
    session: Session,
    table: Table,
    values: Mapping[str, Any],
    *,
    conflict_columns: Sequence[str],
    conflict_where: ColumnElement[bool] | TextClause | None = None,
) -> bool:
    """Insert a row unless a unique index over ``conflict_columns`` already holds one.

    ``conflict_where`` names the predicate of a partial unique index. Returns True
    when this call wrote the row. The caller owns the transaction.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        statement = (
            sqlite_insert(table)
            .values(**values)
            .on_conflict_do_nothing(
                index_elements=list(conflict_columns),
                index_where=conflict_where,
            )
        )
        return session.exec(statement).rowcount == 1  # type: ignore[call-overload]
    if dialect == "postgresql":
        statement = (
            postgresql_insert(table)
            .values(**values)
            .on_conflict_do_nothing(
                index_elements=list(conflict_columns),
                index_where=conflict_where,
            )
        )
        return session.exec(statement).rowcount == 1  # type: ignore[call-overload]

    try:
        with session.begin_nested():
            session.exec(insert(table).values(**values))  # type: ignore[call-overload]
    except IntegrityError:
        return False
    return True
