from __future__ import annotations

from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from checklist.core.logging import get_logger
from checklist.tasks.errors import TaskDomainError

logger = get_logger("checklist.api.errors")

DOMAIN_ERROR_STATUS: dict[str, int] = {
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_CONTENT,
    "PROJECT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "TASK_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PROJECT_BOUNDARY_VIOLATION": status.HTTP_403_FORBIDDEN,
    "UPDATE_CONFLICT": status.HTTP_409_CONFLICT,
    "UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
    "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    details: dict[str, Any] | None = None
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "TASK_NOT_FOUND",
                "message": "Task 3f1c9a52 not found in project 1.",
                "details": {"identifier": "3f1c9a52", "projectId": 1},
            }
        }
    )


class ApiException(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)

    @classmethod
    def from_domain(cls, exc: TaskDomainError) -> ApiException:
        return cls(
            DOMAIN_ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
            exc.code,
            exc.message,
            details=exc.details or None,
        )


def _status_to_code(status_code: int) -> str:
    mapping: dict[int, str] = {
        status.HTTP_400_BAD_REQUEST: "VALIDATION_ERROR",
        status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
        status.HTTP_403_FORBIDDEN: "PROJECT_BOUNDARY_VIOLATION",
        status.HTTP_404_NOT_FOUND: "NOT_FOUND",
        status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
        status.HTTP_409_CONFLICT: "UPDATE_CONFLICT",
        status.HTTP_422_UNPROCESSABLE_CONTENT: "VALIDATION_ERROR",
        status.HTTP_500_INTERNAL_SERVER_ERROR: "INTERNAL_ERROR",
    }
    return mapping.get(status_code, "INTERNAL_ERROR")


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown Error"


def build_error_response(
    status_code: int,
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(error=code, message=message, details=details)
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(mode="json", exclude_none=True),
    )


def _extract_validation_details(exc: RequestValidationError) -> dict[str, Any]:
    issues: list[dict[str, str]] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        issues.append({"field": location, "message": str(error.get("msg", "Invalid value"))})
    return {"issues": issues}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiException)
    async def handle_api_exception(_: Request, exc: ApiException) -> JSONResponse:
        return build_error_response(
            exc.status_code,
            exc.code,
            exc.message,
            details=exc.details,
        )

    @app.exception_handler(TaskDomainError)
    async def handle_domain_error(_: Request, exc: TaskDomainError) -> JSONResponse:
        api_exc = ApiException.from_domain(exc)
        if api_exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("request.domain_failure", error=exc.code, message=exc.message)
        return build_error_response(
            api_exc.status_code,
            api_exc.code,
            api_exc.message,
            details=api_exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return build_error_response(
            status.HTTP_422_UNPROCESSABLE_CONTENT,
            "VALIDATION_ERROR",
            "Request validation failed.",
            details=_extract_validation_details(exc),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(_: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else _status_phrase(exc.status_code)
        return build_error_response(exc.status_code, _status_to_code(exc.status_code), message)

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("request.unhandled_exception", error_type=type(exc).__name__)
        return build_error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "Unexpected server error.",
        )


def error_response_docs(*codes: str) -> dict[int, dict[str, Any]]:
    responses: dict[int, dict[str, Any]] = {}
    for code in codes:
        status_code = DOMAIN_ERROR_STATUS[code]
        responses[status_code] = {
            "model": ErrorResponse,
            "description": _status_phrase(status_code),
            "content": {
                "application/json": {
                    "example": {
                        "success": False,
                        "error": code,
                        "message": _status_phrase(status_code),
                    }
                }
            },
        }
    return responses
