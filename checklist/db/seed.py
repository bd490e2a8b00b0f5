from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlmodel import Session, select

from checklist.core.logging import get_logger
from checklist.db.enums import STAGE_SEQUENCE, TaskStage
from checklist.db.models import Project, TaskTemplate

DEFAULT_PROJECT_NAME = "Checklist Playground Project"

logger = get_logger("checklist.db.seed")


@dataclass(frozen=True, slots=True)
class TemplateDefinition:
    factor_id: str
    stage: TaskStage
    order: int
    text: str


_DEFAULT_FACTORS: tuple[tuple[str, str, tuple[str, str, str, str]], ...] = (
    (
        "3f1c9a52-6d0e-4b7a-9c21-5e8d7b4a1f01",
        "Ask why",
        (
            "Agree the problem the project exists to solve.",
            "Write down the measurable outcome the sponsor expects.",
            "Check delivered work still traces back to the original why.",
            "Record whether the why was answered and what changed.",
        ),
    ),
    (
        "8b7e2d14-0a63-4f9c-b5d8-27c1e6f3a902",
        "Get a whole team",
        (
            "Identify every group that must contribute to delivery.",
            "Confirm named owners for each deliverable.",
            "Hold a regular cross-team review of blockers.",
            "Hand over ownership of the result to the operating team.",
        ),
    ),
    (
        "c4d05e87-91b2-4e3a-8f6c-d3a2b1907c03",
        "Be ready to adapt",
        (
            "List the assumptions most likely to be wrong.",
            "Agree how and when the plan will be revisited.",
            "Re-plan after each increment using what was learned.",
            "Capture lessons for the next project.",
        ),
    ),
)

DEFAULT_TASK_TEMPLATES: tuple[TemplateDefinition, ...] = tuple(
    TemplateDefinition(factor_id=factor_id, stage=stage, order=index, text=text)
    for index, (factor_id, _title, texts) in enumerate(_DEFAULT_FACTORS)
    for stage, text in zip(STAGE_SEQUENCE, texts, strict=True)
)


def seed_task_templates(
    session: Session,
    definitions: Iterable[TemplateDefinition] = DEFAULT_TASK_TEMPLATES,
) -> int:
    """Insert catalog templates that are not present yet and return how many were added."""
    existing = {
        (template.factor_id, str(template.stage))
        for template in session.exec(select(TaskTemplate)).all()
    }
    inserted = 0
    for definition in definitions:
        key = (definition.factor_id, str(definition.stage))
        if key in existing:
            continue
        session.add(
            TaskTemplate(
                factor_id=definition.factor_id,
                stage=definition.stage,
                order=definition.order,
                text=definition.text,
            )
        )
        existing.add(key)
        inserted += 1
    session.commit()
    return inserted


def seed_initial_data(session: Session) -> int:
    """Seed the catalog and the playground project; returns templates inserted."""
    inserted = seed_task_templates(session)

    project = session.exec(select(Project).where(Project.name == DEFAULT_PROJECT_NAME)).first()
    if project is None:
        session.add(Project(name=DEFAULT_PROJECT_NAME))
        session.commit()

    logger.info("db.seeded", templates_inserted=inserted)
    return inserted
