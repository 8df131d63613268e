"""Service-level routes: welcome and health check."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from ikiraha.api.dependencies import get_app_settings
from ikiraha.config import Settings
from ikiraha.database import health_check as db_health_check

router = APIRouter()


@router.get("/")
async def root() -> dict:
    return {
        "success": True,
        "message": "Welcome to Ikiraha API",
        "version": "1.0.0",
        "documentation": "/docs",
        "endpoints": {"auth": "/api/auth", "health": "/health"},
    }


@router.get("/health")
async def health(request: Request, settings: Settings = Depends(get_app_settings)) -> dict:
    """Health check endpoint.

    Returns:
        Status, database connectivity, environment and ISO8601 timestamp
    """
    db_healthy = await db_health_check(getattr(request.app.state, "pool", None))
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if db_healthy else "disconnected",
        "environment": settings.environment,
    }
