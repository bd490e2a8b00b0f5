from __future__ import annotations

from sqlmodel import Session, col, select

from checklist.db.models import Project


class ProjectRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, project_id: int) -> Project | None:
        return self.session.get(Project, project_id)

    def exists(self, project_id: int) -> bool:
        return self.get(project_id) is not None

    def list_ids(self) -> list[int]:
        statement = select(Project.id).order_by(col(Project.id))
        return [project_id for project_id in self.session.exec(statement).all() if project_id]
