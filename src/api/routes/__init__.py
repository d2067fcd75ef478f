"""API routes module."""

from src.api.routes.health import router as health_router
from src.api.routes.matches import router as matches_router
from src.api.routes.preferences import router as preferences_router

__all__ = [
    "health_router",
    "matches_router",
    "preferences_router",
]
