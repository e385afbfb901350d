"""FormForge backend - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formforge.api.router import api_router, root_router, wire_services
from formforge.config import Settings, settings as default_settings
from formforge.errors import FormForgeError
from formforge.logger import configure_logging
from formforge.services.container import Services, build_services

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None, app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Pass prebuilt services to skip provider setup."""
    app_settings = app_settings or (services.settings if services else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(app_settings.log_level)
        logger.info("Starting FormForge backend on port %s", app_settings.port)
        logger.info("Knowledge base backend: %s", app_settings.vector_backend)
        logger.info("Upload dir: %s", app_settings.upload_dir)

        active = services or build_services(app_settings)
        app.state.services = active
        wire_services(active)

        yield

        logger.info("Shutting down FormForge backend")
        await active.shutdown()
        wire_services(None)

    app = FastAPI(
        title="FormForge Service",
        description="Document ingestion and AI workout plan generation with realtime job progress",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(FormForgeError)
    async def formforge_error_handler(request: Request, exc: FormForgeError):
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc, extra={"path": request.url.path})
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"error": "Bad Request", "message": "Invalid request body", "details": {"errors": errors}},
        )

    app.include_router(root_router)
    app.include_router(api_router)
    return app


app = create_app()
