from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from checklist.api.schemas import HealthzResponse, ReadinessChecks, ReadyzResponse
from checklist.core.config import get_settings
from checklist.core.logging import get_logger
from checklist.db.engine import get_engine

router = APIRouter()
logger = get_logger("checklist.api.health")


@router.get("/healthz", response_model=HealthzResponse)
def healthz() -> HealthzResponse:
    settings = get_settings()
    return HealthzResponse(status="ok", service=settings.app_name, env=settings.app_env)


@router.get("/readyz", response_model=ReadyzResponse)
def readyz() -> ReadyzResponse | JSONResponse:
    _ = get_settings()
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("readyz.database_unavailable", error=str(exc))
        payload = ReadyzResponse(
            status="not_ready",
            checks=ReadinessChecks(configuration="ok", database="unavailable"),
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=payload.model_dump(mode="json"),
        )
    return ReadyzResponse(status="ready", checks=ReadinessChecks(configuration="ok", database="ok"))
