from __future__ import annotations

from sqlmodel import Session, col, select

from checklist.db.enums import TaskStage
from checklist.db.models import TaskTemplate
from checklist.db.repositories.common import stage_rank


class TaskTemplateCatalog:
    """Read-only view of the shared template catalog."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[TaskTemplate]:
        statement = select(TaskTemplate).order_by(
            col(TaskTemplate.factor_id),
            stage_rank(TaskTemplate.stage),
            col(TaskTemplate.order),
        )
        return list(self.session.exec(statement).all())

    def get(self, *, factor_id: str, stage: TaskStage) -> TaskTemplate | None:
        statement = (
            select(TaskTemplate)
            .where(TaskTemplate.factor_id == factor_id)
            .where(TaskTemplate.stage == stage.value)
        )
        return self.session.exec(statement).first()
