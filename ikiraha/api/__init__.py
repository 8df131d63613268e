"""API package exports."""

from ikiraha.api.admin import router as admin_router
from ikiraha.api.auth import router as auth_router
from ikiraha.api.middleware import CorrelationIdMiddleware
from ikiraha.api.routes import router

__all__ = ["admin_router", "auth_router", "router", "CorrelationIdMiddleware"]
