"""API package exports."""

from videotube.api.health import router as health_router
from videotube.api.middleware import CorrelationIdMiddleware
from videotube.api.users import router as users_router

__all__ = ["health_router", "users_router", "CorrelationIdMiddleware"]
