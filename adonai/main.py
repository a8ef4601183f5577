from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from adonai import __version__
from adonai.config import Settings
from adonai.controllers import api
from adonai.dependencies import Services
from adonai.errors import AppError, InternalError, ValidationError
from adonai.logger import setup_logging

logger = logging.getLogger(__name__)


class SPAStaticFiles(StaticFiles):
    """Static files with ``index.html`` served for unknown paths."""

    async def get_response(self, path: str, scope):
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as exc:
            if exc.status_code != 404:
                raise
            return await super().get_response("index.html", scope)


async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    err = ValidationError("Invalid request body")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def _log_mode(services: Services) -> None:
    if services.storage_enabled and services.identity.configured:
        logger.info("Supabase: connected (auth + history enabled)")
    elif services.identity.configured:
        logger.warning("Supabase auth configured but DATABASE_URL missing (history and quota disabled)")
    else:
        logger.warning(
            "Supabase: not configured (anonymous-only mode). "
            "Set SUPABASE_URL, SUPABASE_ANON_KEY and SUPABASE_SERVICE_KEY to enable auth"
        )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # services may be injected before startup (tests, embedding)
        if getattr(app.state, "services", None) is None:
            app.state.services = Services.from_settings(settings)
        _log_mode(app.state.services)
        yield
        await app.state.services.aclose()

    app = FastAPI(
        title="ADONAI AI API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api.router)

    @app.get("/healthz", include_in_schema=False)
    async def healthz(request: Request) -> dict[str, object]:
        current: Services = request.app.state.services
        return {"status": "ok", "supabase": current.storage_enabled}

    Instrumentator().instrument(app).expose(app)

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", SPAStaticFiles(directory=static_dir, html=True), name="frontend")

    return app


def get_app() -> FastAPI:
    """Entry point for ``uvicorn adonai.main:get_app --factory``."""
    settings = Settings()
    setup_logging(settings.log_level)
    return create_app(settings)
