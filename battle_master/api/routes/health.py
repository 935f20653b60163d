"""Health check endpoints."""

from fastapi import APIRouter, Request

from battle_master import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": "battle-master",
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check - basic process health."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness check - an API key must be configured to reach the models."""
    settings = request.app.state.settings
    if not settings.has_api_key:
        return {"status": "not_ready", "errors": ["No API key configured"]}
    return {
        "status": "ready",
        "version": __version__,
        "text_model": settings.text_model,
        "tts_model": settings.tts_model,
        "active_sessions": len(request.app.state.sessions),
    }
