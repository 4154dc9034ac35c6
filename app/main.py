from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.v1 import get_api_router
from app.core.config import get_settings
from app.core.db import create_engine, create_session_factory
from app.core.logging import configure_logging, level_from_name
from app.core.storage import get_storage
from app.domain import ProcessRunner, SubprocessRunner


def create_app(process_runner: ProcessRunner | None = None) -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level), fmt=settings.log_format)
    storage = get_storage(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    runner = process_runner or SubprocessRunner()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.storage = storage
        app.state.process_runner = runner
        app.state.engine = engine
        app.state.session_factory = session_factory
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.include_router(get_api_router())
    return app


app = create_app()


__all__ = ["app", "create_app"]
