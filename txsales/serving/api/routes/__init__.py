"""
API Routes Module
"""
from .health import router as health_router
from .locations import router as locations_router
from .areas import router as areas_router
from .analytics import router as analytics_router
from .admin import router as admin_router

__all__ = [
    "health_router",
    "locations_router",
    "areas_router",
    "analytics_router",
    "admin_router",
]
