from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlmodel import Session

from checklist.core.logging import get_logger
from checklist.db.engine import get_engine

logger = get_logger("checklist.db.session")


def get_session() -> Generator[Session, None, None]:
    """Request-scoped session; work a handler did not commit is rolled back."""
    with Session(get_engine()) as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                session.rollback()


@contextmanager
def session_scope(engine: Engine | None = None) -> Iterator[Session]:
    """Commit on success, roll back on any exception."""
    with Session(engine or get_engine()) as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            logger.warning("db.session_rolled_back")
            raise
