"""FastAPI application for Battle Master."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from battle_master import __version__
from battle_master.api.middleware import RequestLoggingMiddleware
from battle_master.api.routes import health, sessions
from battle_master.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Battle Master API")

    from battle_master.llm import create_client_from_settings

    settings = get_settings()
    if not settings.has_api_key:
        logger.warning("No API key configured; generation requests will be rejected upstream")

    app.state.settings = settings
    app.state.llm_client = create_client_from_settings(settings)
    app.state.sessions = {}

    logger.info("Battle Master API started successfully")

    yield

    logger.info("Shutting down Battle Master API")
    for controller in app.state.sessions.values():
        controller.stop_narration()
    app.state.sessions.clear()
    await app.state.llm_client.aclose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Battle Master API",
        description="AI-assisted D&D 5e combat encounter designer",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router, tags=["health"])
    app.include_router(sessions.router, prefix="/api/v1")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.log_level == "DEBUG" else None,
            },
        )

    return app
