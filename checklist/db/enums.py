from __future__ import annotations

from enum import StrEnum


class TaskOrigin(StrEnum):
    CUSTOM = "custom"
    TEMPLATE = "template"


class TaskStage(StrEnum):
    IDENTIFICATION = "identification"
    DEFINITION = "definition"
    DELIVERY = "delivery"
    CLOSURE = "closure"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


# Checklist order of stages; listings sort by this before ``order``.
STAGE_SEQUENCE: tuple[TaskStage, ...] = (
    TaskStage.IDENTIFICATION,
    TaskStage.DEFINITION,
    TaskStage.DELIVERY,
    TaskStage.CLOSURE,
)
