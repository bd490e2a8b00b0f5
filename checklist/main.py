from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from checklist.api.errors import register_exception_handlers
from checklist.api.health import router as health_router
from checklist.api.tasks import router as tasks_router
from checklist.core.auth import LocalApiKeyMiddleware
from checklist.core.config import get_settings
from checklist.core.logging import TraceContextMiddleware, configure_logging
from checklist.db.bootstrap import initialize_database
from checklist.db.engine import dispose_engine, get_engine
from checklist.tasks import ResolutionCache


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.db_auto_init:
            initialize_database(
                database_url=settings.database_url,
                seed=settings.db_auto_seed,
            )
        get_engine()
        try:
            yield
        finally:
            app.state.resolution_cache.clear()
            dispose_engine()

    # DEBUG only drives SQL echo here.
    app = FastAPI(
        title=settings.app_name,
        lifespan=lifespan,
    )
    app.state.resolution_cache = ResolutionCache.from_settings(settings)

    register_exception_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        LocalApiKeyMiddleware,
        api_key=settings.local_api_key,
        require_user=settings.auth_require_user,
    )
    app.add_middleware(TraceContextMiddleware)
    app.include_router(health_router)
    app.include_router(tasks_router, prefix="/api/v1")
    return app


app = create_app()
