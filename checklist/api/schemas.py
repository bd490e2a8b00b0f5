from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class HealthzResponse(BaseModel):
    status: str
    service: str
    env: str


class ReadinessChecks(BaseModel):
    configuration: str
    database: str


class ReadyzResponse(BaseModel):
    status: str
    checks: ReadinessChecks


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskRead(CamelModel):
    id: str
    project_id: int
    origin: str
    source_id: str | None
    stage: str
    text: str
    completed: bool
    status: str
    order: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "0b6f7c1e-4a8d-4f0e-9b53-2f1c6d7e8a90",
                "projectId": 1,
                "origin": "template",
                "sourceId": "3f1c9a52-6d0e-4b7a-9c21-5e8d7b4a1f01",
                "stage": "identification",
                "text": "Write down the problem this project solves.",
                "completed": False,
                "status": "pending",
                "order": 1,
                "createdAt": "2026-02-06T17:00:00Z",
                "updatedAt": "2026-02-06T17:00:00Z",
            }
        },
    )


class DuplicateGroupRead(CamelModel):
    project_id: int
    source_id: str
    stage: str
    count: int
    task_ids: list[str]
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
