from __future__ import annotations

import logging
import logging.config
import time
from typing import Any
from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp
from structlog.types import EventDict, WrappedLogger

from checklist.core.config import Settings

TRACE_HEADER = "X-Trace-ID"
ROTATING_LOG_MAX_BYTES = 5 * 1024 * 1024
ROTATING_LOG_BACKUPS = 3

# Third-party loggers routed through the structured handlers.
_LIBRARY_LOGGERS: tuple[str, ...] = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "sqlalchemy",
    "alembic",
)


def _clean_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_project_id(value: int | str | None) -> int | None:
    text = _clean_text(value)
    if text is None or not text.isdigit():
        return None
    parsed = int(text)
    return parsed if parsed > 0 else None


def bind_log_context(
    *,
    trace_id: str | None = None,
    project_id: int | str | None = None,
    task_id: str | None = None,
    user: str | None = None,
) -> None:
    """Bind request-scoped fields; blank or malformed values are skipped."""
    candidates: dict[str, Any] = {
        "trace_id": _clean_text(trace_id),
        "project_id": _clean_project_id(project_id),
        "task_id": _clean_text(task_id),
        "user": _clean_text(user),
    }
    payload = {key: value for key, value in candidates.items() if value is not None}
    if payload:
        structlog.contextvars.bind_contextvars(**payload)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


def _service_stamp(settings: Settings) -> Any:
    def add_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("env", settings.app_env)
        return event_dict

    return add_service


def _build_handlers(settings: Settings, level: str) -> dict[str, dict[str, object]]:
    handlers: dict[str, dict[str, object]] = {
        "stdout": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
            "level": level,
        }
    }
    if settings.log_file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "structured",
            "level": level,
            "filename": settings.log_file,
            "maxBytes": ROTATING_LOG_MAX_BYTES,
            "backupCount": ROTATING_LOG_BACKUPS,
            "encoding": "utf-8",
        }
    return handlers


def _library_level(name: str, settings: Settings, level: str) -> str:
    # Engine echo installs its own handler; keep the root copy quiet unless asked.
    if name == "sqlalchemy" and not settings.sqlalchemy_echo:
        return "WARNING"
    return level


def configure_logging(settings: Settings) -> None:
    level = settings.log_level.upper()
    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_stamp(settings),
    ]
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if settings.log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    handlers = _build_handlers(settings, level)
    handler_names = list(handlers)

    loggers: dict[str, dict[str, object]] = {
        "": {"handlers": handler_names, "level": level},
    }
    for name in _LIBRARY_LOGGERS:
        loggers[name] = {
            "handlers": handler_names,
            "level": _library_level(name, settings, level),
            "propagate": False,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.processors.format_exc_info,
                        structlog.processors.EventRenamer("message"),
                        renderer,
                    ],
                }
            },
            "handlers": handlers,
            "loggers": loggers,
        }
    )

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _request_trace_id(request: Request) -> str:
    return _clean_text(request.headers.get(TRACE_HEADER)) or f"trace-http-{uuid4().hex}"


class TraceContextMiddleware(BaseHTTPMiddleware):
    """Assigns X-Trace-ID and logs one received/completed pair per request."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._logger = get_logger("checklist.api.request")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = _request_trace_id(request)
        request.state.trace_id = trace_id
        clear_log_context()
        bind_log_context(trace_id=trace_id)
        started = time.perf_counter()
        self._logger.info("request.received", method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception(
                "request.failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            clear_log_context()
            raise
        response.headers[TRACE_HEADER] = trace_id
        self._logger.info(
            "request.completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        clear_log_context()
        return response
